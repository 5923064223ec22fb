"""Parsing of Terraform machine-readable output and state files."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

_PLAN_RE = re.compile(
    r"Plan:\s*(\d+)\s*to add,\s*(\d+)\s*to change,\s*(\d+)\s*to destroy", re.ASCII
)

_MISSING: Any = object()

Data = Union[bytes, bytearray, str]


def _field(data: Mapping[str, Any], key: str, kind: type, default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    if kind is int:
        valid = isinstance(value, int) and not isinstance(value, bool)
    else:
        valid = isinstance(value, kind)
    if not valid:
        raise ValueError(f"field {key!r} must be of type {kind.__name__}")
    return value


def _nested(data: Mapping[str, Any], key: str, cls: Any) -> Any:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ValueError(f"field {key!r} must be an object")
    return cls.from_dict(value)


@dataclass
class SourceRange:
    """Where in the configuration a diagnostic points."""

    filename: str = ""
    line: int = 0
    column: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SourceRange":
        start = data.get("start")
        if start is None:
            start = {}
        elif not isinstance(start, dict):
            raise ValueError("field 'start' must be an object")
        return cls(
            filename=_field(data, "filename", str, ""),
            line=_field(start, "line", int, 0),
            column=_field(start, "column", int, 0),
        )


@dataclass
class Diagnostic:
    """An error or warning reported by Terraform."""

    severity: str = ""
    summary: str = ""
    detail: str = ""
    address: str = ""
    range: Optional[SourceRange] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Diagnostic":
        return cls(
            severity=_field(data, "severity", str, ""),
            summary=_field(data, "summary", str, ""),
            detail=_field(data, "detail", str, ""),
            address=_field(data, "address", str, ""),
            range=_nested(data, "range", SourceRange),
        )


@dataclass
class ChangeSummary:
    """Counts of planned or applied changes."""

    add: int = 0
    change: int = 0
    import_: int = 0
    remove: int = 0
    operation: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChangeSummary":
        return cls(
            add=_field(data, "add", int, 0),
            change=_field(data, "change", int, 0),
            import_=_field(data, "import", int, 0),
            remove=_field(data, "remove", int, 0),
            operation=_field(data, "operation", str, ""),
        )


@dataclass
class ResourceInfo:
    addr: str = ""
    module: str = ""
    resource: str = ""
    resource_type: str = ""
    resource_name: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResourceInfo":
        return cls(
            addr=_field(data, "addr", str, ""),
            module=_field(data, "module", str, ""),
            resource=_field(data, "resource", str, ""),
            resource_type=_field(data, "resource_type", str, ""),
            resource_name=_field(data, "resource_name", str, ""),
        )


@dataclass
class HookInfo:
    """Resource operation details carried by hook messages."""

    resource: Optional[ResourceInfo] = None
    action: str = ""
    id_key: str = ""
    id_value: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HookInfo":
        return cls(
            resource=_nested(data, "resource", ResourceInfo),
            action=_field(data, "action", str, ""),
            id_key=_field(data, "id_key", str, ""),
            id_value=_field(data, "id_value", str, ""),
        )


@dataclass
class TerraformMessage:
    """One line of Terraform ``-json`` output."""

    level: str = ""
    message: str = ""
    module: str = ""
    timestamp: str = ""
    type: str = ""
    terraform: str = ""
    ui: str = ""
    changes: Optional[ChangeSummary] = None
    diagnostic: Optional[Diagnostic] = None
    hook: Optional[HookInfo] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TerraformMessage":
        return cls(
            level=_field(data, "@level", str, ""),
            message=_field(data, "@message", str, ""),
            module=_field(data, "@module", str, ""),
            timestamp=_field(data, "@timestamp", str, ""),
            type=_field(data, "type", str, ""),
            terraform=_field(data, "terraform", str, ""),
            ui=_field(data, "ui", str, ""),
            changes=_nested(data, "changes", ChangeSummary),
            diagnostic=_nested(data, "diagnostic", Diagnostic),
            hook=_nested(data, "hook", HookInfo),
        )


def parse_message(line: str) -> TerraformMessage:
    """Decode one JSON output line; raise ValueError if it is not a message object."""
    data = json.loads(line)
    if not isinstance(data, dict):
        raise ValueError("terraform message must be a JSON object")
    return TerraformMessage.from_dict(data)


@dataclass
class PlanInfo:
    to_add: int = 0
    to_change: int = 0
    to_destroy: int = 0


@dataclass
class ParseResult:
    messages: list[TerraformMessage] = field(default_factory=list)
    changes: Optional[ChangeSummary] = None
    errors: list[Diagnostic] = field(default_factory=list)
    version: str = ""
    success: bool = True


@dataclass
class TfStateInstance:
    schema_version: int = 0
    attributes: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TfStateInstance":
        return cls(
            schema_version=_field(data, "schema_version", int, 0),
            attributes=dict(_field(data, "attributes", dict, {})),
        )


def _objects(data: Mapping[str, Any], key: str, cls: Any) -> list:
    items = _field(data, key, list, [])
    parsed = []
    for item in items:
        if item is None:
            parsed.append(cls())
        elif isinstance(item, dict):
            parsed.append(cls.from_dict(item))
        else:
            raise ValueError(f"items of {key!r} must be objects")
    return parsed


@dataclass
class TfStateResource:
    mode: str = ""
    type: str = ""
    name: str = ""
    provider: str = ""
    instances: list[TfStateInstance] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TfStateResource":
        return cls(
            mode=_field(data, "mode", str, ""),
            type=_field(data, "type", str, ""),
            name=_field(data, "name", str, ""),
            provider=_field(data, "provider", str, ""),
            instances=_objects(data, "instances", TfStateInstance),
        )


@dataclass
class TfState:
    """The parts of ``terraform.tfstate`` that are kept."""

    version: int = 0
    serial: int = 0
    lineage: str = ""
    resources: list[TfStateResource] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TfState":
        return cls(
            version=_field(data, "version", int, 0),
            serial=_field(data, "serial", int, 0),
            lineage=_field(data, "lineage", str, ""),
            resources=_objects(data, "resources", TfStateResource),
        )


class _RawFloat(float):
    """A float that remembers how it was written."""

    def __new__(cls, text: str) -> "_RawFloat":
        number = super().__new__(cls, text)
        number.raw = text
        return number


def _load(data: Data) -> Any:
    if isinstance(data, (bytes, bytearray)):
        data = bytes(data).decode("utf-8", errors="replace")
    try:
        return json.loads(data, parse_float=_RawFloat)
    except ValueError:
        return _MISSING


def _text(value: Any) -> str:
    """Render a JSON value as a plain string, the way path queries report it."""
    if value is _MISSING or value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, _RawFloat):
        return value.raw
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _get(value: Any, key: str) -> Any:
    if isinstance(value, dict):
        return value.get(key, _MISSING)
    if isinstance(value, list) and key.isascii() and key.isdigit():
        index = int(key)
        return value[index] if index < len(value) else _MISSING
    return _MISSING


def _each(value: Any) -> list:
    if value is _MISSING:
        return []
    if isinstance(value, dict):
        return list(value.values())
    if isinstance(value, list):
        return value
    return [value]


def _split_path(path: str) -> list[str]:
    parts: list[str] = []
    current: list[str] = []
    escaped = False
    for char in path:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == ".":
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


def _lookup(document: Any, path: str) -> Any:
    value = document
    for part in _split_path(path):
        if isinstance(value, list) and part == "#":
            value = len(value)
        else:
            value = _get(value, part)
        if value is _MISSING:
            return _MISSING
    return value


class Parser:
    """Reads plan summaries, diagnostics and state attributes from Terraform output."""

    def parse_json_output(self, output: str) -> ParseResult:
        """Parse ``-json`` output, one message per line; other lines are skipped."""
        result = ParseResult()
        for raw_line in output.split("\n"):
            line = raw_line.strip()
            if not line.startswith("{"):
                continue
            try:
                message = parse_message(line)
            except ValueError:
                continue
            result.messages.append(message)
            if message.type == "version":
                result.version = message.terraform
            elif message.type == "change_summary":
                if message.changes is not None:
                    result.changes = message.changes
            elif message.type == "diagnostic" and message.diagnostic is not None:
                result.errors.append(message.diagnostic)
                if message.diagnostic.severity == "error":
                    result.success = False
        return result

    def parse_plan(self, output: str) -> PlanInfo:
        """Change counts from JSON output, or from a text ``Plan:`` line."""
        changes = self.parse_json_output(output).changes
        if changes is not None:
            return PlanInfo(changes.add, changes.change, changes.remove)
        match = _PLAN_RE.search(output)
        if match is None:
            return PlanInfo()
        return PlanInfo(*(int(group) for group in match.groups()))

    def parse_tfstate(self, data: Data) -> dict[str, str]:
        """Map ``type.name.id`` and ``type.name.arn`` to their values for every instance."""
        attrs: dict[str, str] = {}
        document = _load(data)
        for resource in _each(_get(document, "resources")):
            resource_type = _text(_get(resource, "type"))
            name = _text(_get(resource, "name"))
            for instance in _each(_get(resource, "instances")):
                attributes = _get(instance, "attributes")
                if attributes is _MISSING:
                    continue
                for key in ("id", "arn"):
                    value = _get(attributes, key)
                    if value is not _MISSING:
                        attrs[f"{resource_type}.{name}.{key}"] = _text(value)
        return attrs

    def parse_tfstate_json(self, data: Data) -> TfState:
        """Decode a state file; raise ValueError if it is not valid."""
        document = json.loads(data)
        if document is None:
            return TfState()
        if not isinstance(document, dict):
            raise ValueError("tfstate must be a JSON object")
        return TfState.from_dict(document)

    def extract_attributes(self, data: Data, paths: Mapping[str, str]) -> dict[str, str]:
        """Look up each dotted path; names whose path is absent are left out."""
        document = _load(data)
        result: dict[str, str] = {}
        for name, path in paths.items():
            value = _lookup(document, path)
            if value is not _MISSING:
                result[name] = _text(value)
        return result