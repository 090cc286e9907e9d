"""Report compiler: materialise, compose, render, and hand off.

Every public entry point returns a ``ReportResult``. Failures are logged and
surface with a short user-facing message; a rendered file that cannot be
placed is removed rather than left half-written.
"""

import asyncio
import logging
import re
import shutil
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Sequence

from propertysnap.core.config import Settings, get_settings
from propertysnap.core.exceptions import PreconditionViolation, ReportGenerationError
from propertysnap.models.enums import InspectionType, ReportEntryPoint
from propertysnap.schemas.base import utcnow
from propertysnap.schemas.inspection import Inspection
from propertysnap.schemas.property import Property
from propertysnap.schemas.report import RenderOptions
from propertysnap.schemas.results import ReportResult
from propertysnap.schemas.team import Branding
from propertysnap.services.factories import generate_id
from propertysnap.services.files import uri_to_path
from propertysnap.services.formatting import iso_day
from propertysnap.services.interfaces import PdfRenderer, ShareSink
from propertysnap.services.report_html import render_history_html, render_inspection_html
from propertysnap.services.report_model import build_history_model, build_inspection_model

logger = logging.getLogger(__name__)

PDF_MIME_TYPE = "application/pdf"
SHARE_DIALOG_TITLE = "Share Inspection Report"
SLUG_LENGTH = 30


def address_slug(text: str, limit: Optional[int] = SLUG_LENGTH) -> str:
    """Every non-alphanumeric character becomes ``_``."""
    slug = re.sub(r"[^a-zA-Z0-9]", "_", text)
    return slug[:limit] if limit else slug


def report_filename(
    address: str,
    inspection_type: InspectionType,
    day: str,
    branding: Optional[Branding] = None,
) -> str:
    prefix = "PropertySnap"
    if branding is not None and branding.company_name:
        prefix = address_slug(branding.company_name, None)
    return f"{prefix}_{inspection_type.value}_{address_slug(address)}_{day}.pdf"


def history_filename(address: str, day: str) -> str:
    return f"{address_slug(address)}_Inspection_History_{day}.pdf"


class ReportCompiler:
    """Compile inspections into PDFs through the external renderer."""

    def __init__(
        self,
        renderer: PdfRenderer,
        share_sink: Optional[ShareSink] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.renderer = renderer
        self.share_sink = share_sink
        self.settings = settings or get_settings()
        self.clock = clock

    # ------------------------------------------------------------------
    # HTML
    # ------------------------------------------------------------------

    async def inspection_html(
        self,
        prop: Property,
        inspection: Inspection,
        branding: Optional[Branding] = None,
        *,
        report_id: Optional[str] = None,
        generated_at: Optional[datetime] = None,
    ) -> str:
        model = await build_inspection_model(
            prop,
            inspection,
            report_id=report_id or generate_id(),
            generated_at=generated_at or self.clock(),
            branding=branding,
        )
        return render_inspection_html(model)

    async def history_html(
        self,
        prop: Property,
        inspections: Optional[Sequence[Inspection]] = None,
        branding: Optional[Branding] = None,
        *,
        report_id: Optional[str] = None,
        generated_at: Optional[datetime] = None,
    ) -> str:
        model = await build_history_model(
            prop,
            list(prop.inspections if inspections is None else inspections),
            report_id=report_id or generate_id(),
            generated_at=generated_at or self.clock(),
            branding=branding,
        )
        return render_history_html(model)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _place(self, rendered_uri: str, filename: str) -> str:
        source = uri_to_path(rendered_uri)
        target_dir = Path(self.settings.report_output_dir)
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / filename
        if source.resolve() == target.resolve():
            return str(target)
        try:
            shutil.move(str(source), str(target))
        except OSError:
            source.unlink(missing_ok=True)
            raise
        return str(target)

    async def render_file(self, html: str, filename: str) -> str:
        """Render ``html`` to a PDF and move it into the report directory.

        Raises:
            ReportGenerationError: the renderer failed or the file could not be placed.
        """
        try:
            rendered = await self.renderer.render_html_to_file(
                html, RenderOptions(filename=filename)
            )
            return await asyncio.to_thread(self._place, rendered.uri, filename)
        except ReportGenerationError:
            raise
        except Exception as e:
            raise ReportGenerationError(f"Failed to render {filename}: {e}") from e

    async def _render(self, html: str, filename: str) -> ReportResult:
        try:
            uri = await self.render_file(html, filename)
        except ReportGenerationError:
            logger.exception("PDF rendering failed for %s", filename)
            return ReportResult.failed()
        logger.info("Rendered report %s", filename)
        return ReportResult(success=True, uri=uri, filename=filename)

    async def generate(
        self,
        prop: Property,
        inspection: Inspection,
        branding: Optional[Branding] = None,
    ) -> ReportResult:
        """Render one inspection to a PDF file."""
        generated_at = self.clock()
        try:
            html = await self.inspection_html(prop, inspection, branding, generated_at=generated_at)
        except (OSError, ValueError):
            logger.exception(
                "Report compilation failed",
                extra={"inspection_id": inspection.id, "property_id": prop.id},
            )
            return ReportResult.failed()
        filename = report_filename(prop.address, inspection.type, iso_day(generated_at), branding)
        return await self._render(html, filename)

    async def generate_history(
        self,
        prop: Property,
        inspections: Optional[Sequence[Inspection]] = None,
        branding: Optional[Branding] = None,
    ) -> ReportResult:
        """Render every inspection of a property, oldest first."""
        generated_at = self.clock()
        try:
            html = await self.history_html(prop, inspections, branding, generated_at=generated_at)
        except PreconditionViolation as e:
            return ReportResult.failed(e.message)
        except (OSError, ValueError):
            logger.exception("History compilation failed", extra={"property_id": prop.id})
            return ReportResult.failed()
        return await self._render(html, history_filename(prop.address, iso_day(generated_at)))

    # ------------------------------------------------------------------
    # Hand-off
    # ------------------------------------------------------------------

    async def share(self, result: ReportResult) -> ReportResult:
        if not result.success:
            return result
        if self.share_sink is None:
            logger.error("No share sink configured")
            return ReportResult.failed()
        try:
            await self.share_sink.share(result.uri, PDF_MIME_TYPE, SHARE_DIALOG_TITLE)
        except Exception:
            logger.exception("Sharing %s failed", result.filename)
            return ReportResult.failed()
        return result

    async def share_report(
        self,
        prop: Property,
        inspection: Inspection,
        branding: Optional[Branding] = None,
    ) -> ReportResult:
        return await self.share(await self.generate(prop, inspection, branding))

    async def print_report(
        self,
        prop: Property,
        inspection: Inspection,
        branding: Optional[Branding] = None,
    ) -> ReportResult:
        """Send the composed HTML straight to the print subsystem."""
        if self.share_sink is None:
            logger.error("No print sink configured")
            return ReportResult.failed()
        try:
            html = await self.inspection_html(prop, inspection, branding)
            await self.share_sink.print_html(html)
        except Exception:
            logger.exception("Printing failed", extra={"inspection_id": inspection.id})
            return ReportResult.failed()
        return ReportResult(success=True)

    async def export(
        self,
        entry_point: ReportEntryPoint,
        prop: Property,
        inspection: Inspection,
        branding: Optional[Branding] = None,
    ) -> ReportResult:
        if entry_point == ReportEntryPoint.PRINT:
            return await self.print_report(prop, inspection, branding)
        if entry_point == ReportEntryPoint.SHARE:
            return await self.share_report(prop, inspection, branding)
        return await self.generate(prop, inspection, branding)

    async def export_history(
        self,
        entry_point: ReportEntryPoint,
        prop: Property,
        inspections: Optional[Sequence[Inspection]] = None,
        branding: Optional[Branding] = None,
    ) -> ReportResult:
        if entry_point == ReportEntryPoint.PRINT:
            if self.share_sink is None:
                return ReportResult.failed()
            try:
                html = await self.history_html(prop, inspections, branding)
                await self.share_sink.print_html(html)
            except PreconditionViolation as e:
                return ReportResult.failed(e.message)
            except Exception:
                logger.exception("Printing history failed", extra={"property_id": prop.id})
                return ReportResult.failed()
            return ReportResult(success=True)
        result = await self.generate_history(prop, inspections, branding)
        if entry_point == ReportEntryPoint.SHARE:
            return await self.share(result)
        return result

