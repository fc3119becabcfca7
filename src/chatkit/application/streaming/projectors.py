"""Block projectors.

Read the freshly patched assistant message tree (or a raw progress entry)
and emit typed content blocks into a ``BlockSink``.

Extraction functions never raise on unexpected shapes: they return ``None``
and the skill call is skipped.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from chatkit.application.services.block_sink import BlockSink
from chatkit.application.streaming.patch_interpreter import get_in
from chatkit.domain.events import Patch
from chatkit.domain.models import (
    ChartDataSchema,
    ChartDimension,
    ChartMeasure,
    ExecuteCodeResult,
    Text2SqlCite,
    Text2SqlDataDesc,
    Text2SqlResult,
    WebSearchQuery,
    WebSearchResult,
)

logger = logging.getLogger(__name__)

FINAL_ANSWER_TEXT_PATH = ["message", "content", "final_answer", "answer", "text"]
PROGRESS_PATH = ["message", "content", "middle_answer", "progress"]

WEB_SEARCH_SKILL = "zhipu_search_tool"
CHART_SKILL = "json2plot"
EXECUTE_CODE_SKILL = "execute_code"
TEXT2SQL_SKILL = "text2sql"

CHART_TYPES = ("Line", "Column", "Pie", "Circle")
DEFAULT_CODE_OUTPUT = "Execution completed"

_DATE_FORMATS = ("%Y/%m/%d", "%Y/%m/%d %H:%M:%S", "%Y.%m.%d", "%d %b %Y", "%b %d, %Y")


# =============================================================================
# Field Type Inference
# =============================================================================


def _looks_like_date(value: str) -> bool:
    text = value.strip()
    if not text or text.lstrip("-").replace(".", "", 1).isdigit():
        return False
    try:
        datetime.fromisoformat(text)
        return True
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            datetime.strptime(text, fmt)
            return True
        except ValueError:
            continue
    return False


def infer_data_type(value: Any) -> str:
    """Classify a sample cell value as boolean, number, date or string."""
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str) and _looks_like_date(value):
        return "date"
    return "string"


# =============================================================================
# Payload Extraction
# =============================================================================


def _skill_args(entry: dict[str, Any]) -> list[dict[str, Any]]:
    args = get_in(entry, ["skill_info", "args"])
    if not isinstance(args, list):
        return []
    return [arg for arg in args if isinstance(arg, dict)]


def _str(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def extract_web_search(answer: Any) -> Optional[WebSearchQuery]:
    """Pull the query and hits out of ``answer.choices[0].message.tool_calls``.

    Element 0 carries the search intent, element 1 the result list.
    """
    tool_calls = get_in(answer, ["choices", 0, "message", "tool_calls"])
    if not isinstance(tool_calls, list) or len(tool_calls) < 2:
        return None

    intent = tool_calls[0].get("search_intent") if isinstance(tool_calls[0], dict) else None
    if isinstance(intent, list):
        intent = intent[0] if intent else None
    query = ""
    if isinstance(intent, dict):
        query = _str(intent.get("query") or intent.get("keywords"))

    hits = tool_calls[1].get("search_result") if isinstance(tool_calls[1], dict) else None
    if not isinstance(hits, list):
        return None

    results = [
        WebSearchResult(
            content=_str(hit.get("content")),
            icon=_str(hit.get("icon")),
            link=_str(hit.get("link")),
            media=_str(hit.get("media")),
            title=_str(hit.get("title")),
        )
        for hit in hits
        if isinstance(hit, dict)
    ]
    return WebSearchQuery(input=query, results=results)


def extract_chart(answer: Any) -> Optional[ChartDataSchema]:
    """Build a chart schema from a chart-generation skill answer.

    Dimensions come from ``xField``, ``groupField`` and ``seriesField``; the
    measure from ``yField``. When either list ends up empty the first data
    row is sampled instead. Returns ``None`` unless both are non-empty.
    """
    if not isinstance(answer, dict):
        return None
    result = answer.get("full_result") or answer.get("result")
    if not isinstance(result, dict):
        return None
    config = result.get("chart_config")
    if not isinstance(config, dict):
        return None
    chart_type = config.get("chart_type")
    if chart_type not in CHART_TYPES:
        return None

    rows = result.get("data") or result.get("data_sample")
    if not isinstance(rows, list) or not rows or not isinstance(rows[0], dict):
        return None
    first_row: dict[str, Any] = rows[0]

    dimensions: list[ChartDimension] = []
    measures: list[ChartMeasure] = []

    x_field = config.get("xField")
    group_field = config.get("groupField")
    series_field = config.get("seriesField")
    y_field = config.get("yField")

    if x_field and x_field in first_row:
        dimensions.append(ChartDimension(name=x_field, display_name=x_field, data_type=infer_data_type(first_row[x_field])))
    if group_field and group_field != x_field and group_field in first_row:
        dimensions.append(ChartDimension(name=group_field, display_name=group_field, data_type=infer_data_type(first_row[group_field])))
    if series_field and series_field not in (x_field, group_field) and series_field in first_row:
        dimensions.append(ChartDimension(name=series_field, display_name=series_field, data_type=infer_data_type(first_row[series_field])))
    if y_field and y_field in first_row:
        measures.append(ChartMeasure(name=y_field, display_name=y_field, data_type="number"))

    if not dimensions or not measures:
        field_types = {name: infer_data_type(value) for name, value in first_row.items() if value is not None}
        measure_names = {m.name for m in measures}
        if not dimensions:
            for name, data_type in field_types.items():
                if data_type != "number" and name not in measure_names:
                    dimensions.append(ChartDimension(name=name, display_name=name, data_type=data_type))
                    break
        if not measures:
            dimension_names = {d.name for d in dimensions}
            for name, data_type in field_types.items():
                if data_type == "number" and name not in dimension_names:
                    measures.append(ChartMeasure(name=name, display_name=name, data_type="number"))
                    break

    if not dimensions or not measures:
        logger.debug(f"Skipping {chart_type} chart: could not infer dimensions and measures")
        return None

    return ChartDataSchema(
        chart_type=chart_type,
        title=_str(result.get("title") or config.get("title")),
        dimensions=dimensions,
        measures=measures,
        rows=[row for row in rows if isinstance(row, dict)],
    )


def extract_execute_code(entry: Any) -> Optional[ExecuteCodeResult]:
    """Source code comes from the skill args, stdout from ``answer.result.result.stdout``."""
    if not isinstance(entry, dict):
        return None

    code = ""
    for arg in _skill_args(entry):
        if arg.get("name") in ("code", "script") or arg.get("type") == "str":
            value = arg.get("value")
            if isinstance(value, str) and value:
                code = value
                break
    if not code.strip():
        return None

    stdout = get_in(entry, ["answer", "result", "result", "stdout"])
    output = stdout if isinstance(stdout, str) and stdout else DEFAULT_CODE_OUTPUT
    return ExecuteCodeResult(input=code, output=output)


def extract_text2sql(entry: Any) -> Optional[Text2SqlResult]:
    """Prefer ``answer.full_result`` over ``answer.result``; requires a non-empty ``input`` arg."""
    if not isinstance(entry, dict):
        return None

    query = ""
    for arg in _skill_args(entry):
        if arg.get("name") == "input":
            query = _str(arg.get("value"))
            break
    if not query.strip():
        return None

    answer = entry.get("answer")
    if not isinstance(answer, dict):
        return None
    partial = answer.get("result")
    result = answer.get("full_result") or partial
    if not isinstance(result, dict):
        return None

    data = result.get("data")
    cites = result.get("cites")
    data_desc = partial.get("data_desc") if isinstance(partial, dict) else None

    return Text2SqlResult(
        input=query,
        sql=_str(result.get("sql")),
        data=[row for row in data if isinstance(row, dict)] if isinstance(data, list) else [],
        cites=[
            Text2SqlCite(
                id=_str(cite.get("id")),
                name=_str(cite.get("name")),
                type=_str(cite.get("type")),
                description=_str(cite.get("description")),
            )
            for cite in (cites if isinstance(cites, list) else [])
            if isinstance(cite, dict)
        ],
        title=_str(result.get("title")),
        message=_str(result.get("message")),
        data_desc=(
            Text2SqlDataDesc(
                return_records_num=_int(data_desc.get("return_records_num")),
                real_records_num=_int(data_desc.get("real_records_num")),
            )
            if isinstance(data_desc, dict)
            else None
        ),
        explanation=result.get("explanation"),
    )


# =============================================================================
# Projector
# =============================================================================


class BlockProjector:
    """Emits content blocks for whitelisted tree changes.

    Handlers take ``(tree, patch, message_id)`` so that whitelist entries can
    reference them as unbound methods.
    """

    def __init__(self, sink: BlockSink) -> None:
        self.sink = sink

    # Whitelist handlers

    def on_error(self, tree: dict[str, Any], patch: Patch, message_id: str) -> None:
        logger.warning(f"Agent reported an error for message {message_id}: {patch.content}")

    def on_final_answer_text(self, tree: dict[str, Any], patch: Patch, message_id: str) -> None:
        text = get_in(tree, FINAL_ANSWER_TEXT_PATH)
        if isinstance(text, str):
            self.sink.append_markdown_block(message_id, text)

    def on_answer_type_other(self, tree: dict[str, Any], patch: Patch, message_id: str) -> None:
        entry = patch.content
        if isinstance(entry, dict) and entry.get("stage") == "skill":
            self.project_skill(entry, message_id)

    def on_progress_entry(self, tree: dict[str, Any], patch: Patch, message_id: str) -> None:
        self.project_entry(patch.content, message_id)

    def on_progress_answer(self, tree: dict[str, Any], patch: Patch, message_id: str) -> None:
        entry = get_in(tree, patch.key_path[:-1])
        if isinstance(entry, dict) and entry.get("stage") == "llm":
            answer = entry.get("answer")
            if isinstance(answer, str):
                self.sink.append_markdown_block(message_id, answer)

    # Entry projection, shared with history loading

    def project_entry(self, entry: Any, message_id: str) -> None:
        """Project one progress entry (``skill`` or ``llm`` stage)."""
        if not isinstance(entry, dict):
            return
        stage = entry.get("stage")
        if stage == "skill":
            self.project_skill(entry, message_id)
        elif stage == "llm":
            answer = entry.get("answer")
            if isinstance(answer, str):
                self.sink.append_markdown_block(message_id, answer)

    def project_skill(self, entry: dict[str, Any], message_id: str) -> None:
        """Dispatch a ``stage: skill`` entry on ``skill_info.name``."""
        name = _str(get_in(entry, ["skill_info", "name"]))
        answer = entry.get("answer")

        if name == WEB_SEARCH_SKILL:
            query = extract_web_search(answer)
            if query is not None:
                self.sink.append_web_search_block(message_id, query)
        elif name == CHART_SKILL:
            chart = extract_chart(answer)
            if chart is not None:
                self.sink.append_json2plot_block(message_id, chart)
        elif name == EXECUTE_CODE_SKILL:
            execution = extract_execute_code(entry)
            if execution is not None:
                self.sink.append_execute_code_block(message_id, execution)
        elif name == TEXT2SQL_SKILL:
            sql = extract_text2sql(entry)
            if sql is not None:
                self.sink.append_text2sql_block(message_id, sql)
        else:
            self.sink.append_text_block(message_id, f"Tool call: {name or 'unknown'}")
