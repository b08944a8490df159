"""Built-in tool implementations for the chat agent."""

from __future__ import annotations

from dataclasses import asdict
from datetime import date, datetime, time, timezone
from typing import Any, Literal, Protocol

from pydantic import BaseModel, Field

from chat_agent.agent.context import RequestContext
from chat_agent.agent.registry import ToolRegistry, ToolSpec
from chat_agent.documents.analyzer import DocumentAnalyzer

SEARCH_WEB = "search_web"
LIST_CALENDAR_EVENTS = "list_calendar_events"
LIST_DRIVE_FILES = "list_drive_files"
ANALYZE_DOCUMENT = "analyze_document"


class ToolAdapter(Protocol):
    """Vendor integration behind a tool. ``token`` is the per-request delegated credential."""

    async def execute(self, input: dict[str, Any], token: str | None) -> dict[str, Any]: ...


class SearchWebInput(BaseModel):
    query: str = Field(min_length=1, description="Search query")
    limit: int = Field(default=5, ge=1, le=10, description="Number of results")


class CalendarEventsInput(BaseModel):
    start_date: date = Field(description="Start date (YYYY-MM-DD)")
    end_date: date = Field(description="End date (YYYY-MM-DD)")
    max_results: int = Field(default=10, ge=1, le=50)


class DriveFilesInput(BaseModel):
    query: str | None = Field(default=None, description="Search query")
    max_results: int = Field(default=10, ge=1, le=50)
    folder_id: str | None = None


class AnalyzeDocumentInput(BaseModel):
    document_base64: str = Field(min_length=1, description="Document content, base64 encoded")
    file_name: str = Field(min_length=1, description="File name including extension")
    analysis_type: Literal[
        "general", "summary", "extraction", "legal", "financial", "technical", "medical"
    ] = "general"
    specific_questions: list[str] | None = None


def register_builtin_tools(
    registry: ToolRegistry,
    analyzer: DocumentAnalyzer,
    *,
    search: ToolAdapter | None = None,
    calendar: ToolAdapter | None = None,
    drive: ToolAdapter | None = None,
) -> None:
    """Register the default tool set offered to the model.

    Tools:
    - `search_web`: web search through the search adapter.
    - `list_calendar_events`: calendar listing, needs the request's calendar token.
    - `list_drive_files`: drive listing, needs the request's drive token.
    - `analyze_document`: runs the document analysis pipeline in-process.
    """

    async def _search(input_data: SearchWebInput, context: RequestContext) -> dict[str, Any]:
        if search is None:
            return {"success": False, "results": [], "message": "Web search is not configured"}
        return await search.execute(input_data.model_dump(), None)

    async def _calendar(input_data: CalendarEventsInput, context: RequestContext) -> dict[str, Any]:
        token = context.auth_tokens.calendar
        if calendar is None:
            return {"success": False, "events": [], "message": "Calendar integration is not configured"}
        if not token:
            return {"success": False, "events": [], "message": "Calendar token not available"}
        payload = {
            "time_min": _day_bound(input_data.start_date, end_of_day=False),
            "time_max": _day_bound(input_data.end_date, end_of_day=True),
            "max_results": input_data.max_results,
        }
        return await calendar.execute(payload, token)

    async def _drive(input_data: DriveFilesInput, context: RequestContext) -> dict[str, Any]:
        token = context.auth_tokens.drive
        if drive is None:
            return {"success": False, "files": [], "message": "Drive integration is not configured"}
        if not token:
            return {"success": False, "files": [], "message": "Drive token not available"}
        return await drive.execute(input_data.model_dump(exclude_none=True), token)

    async def _analyze(input_data: AnalyzeDocumentInput, context: RequestContext) -> dict[str, Any]:
        result = await analyzer.analyze_base64(
            input_data.document_base64,
            input_data.file_name,
            input_data.analysis_type,
            input_data.specific_questions,
        )
        payload = asdict(result)
        payload["message"] = (
            f"Analyzed {input_data.file_name}" if result.success else (result.error or "Analysis failed")
        )
        return payload

    registry.register(
        ToolSpec(
            name=SEARCH_WEB,
            description="Search the web for current information.",
            args_schema=SearchWebInput,
            handler=_search,
            tags=["web"],
        )
    )
    registry.register(
        ToolSpec(
            name=LIST_CALENDAR_EVENTS,
            description="List events from the user's calendar between two dates.",
            args_schema=CalendarEventsInput,
            handler=_calendar,
            tags=["calendar"],
        )
    )
    registry.register(
        ToolSpec(
            name=LIST_DRIVE_FILES,
            description="List files in the user's drive, optionally filtered by query or folder.",
            args_schema=DriveFilesInput,
            handler=_drive,
            tags=["drive"],
        )
    )
    registry.register(
        ToolSpec(
            name=ANALYZE_DOCUMENT,
            description=(
                "Analyze a PDF, Word, Excel, CSV or text document to extract content, "
                "summarize it and answer specific questions."
            ),
            args_schema=AnalyzeDocumentInput,
            handler=_analyze,
            tags=["documents"],
        )
    )


def _day_bound(day: date, *, end_of_day: bool) -> str:
    moment = time.max if end_of_day else time.min
    return datetime.combine(day, moment, tzinfo=timezone.utc).isoformat()
