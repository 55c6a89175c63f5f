"""Deterministic documentation tables built from the added lines of a diff.

Nothing here involves the analysis backend, so the same files always
produce the same markdown. Field values are scraped with
:func:`extract_field`, the only place that knows how a tag is matched.
"""

from __future__ import annotations

import re

from prsift_core.models import FileDiff

_DOC_HEADING = "## Metadata Change Documentation"

_FIELD_PATH_RE = re.compile(r"/objects/([^/]+)/fields/([^/]+)\.field-meta\.xml$")
_PICKLIST_VALUE_RE = re.compile(r"<value>\s*<fullName>([^<]+)</fullName>")
_VALUE_SET_RE = re.compile(r"<valueSetName>([^<]+)</valueSetName>")
_TRACKED_FIELD_TAGS = ("defaultValue", "formula", "length", "precision", "required", "scale", "type")

_LOOP_RE = re.compile(r"<loop\b")
_FLOW_DML_RE = re.compile(r"createRecords|updateRecords|deleteRecords")

_FOR_RE = re.compile(r"\bfor\s*\(")
_DML_RE = re.compile(r"\b(insert|update|upsert|delete|undelete)\b|\bdatabase\.[a-z]+\b")
_SOQL_RE = re.compile(r"\[\s*select\b")
_HARD_CODED_ID_RE = re.compile(r"['\"]0{2}[0-9a-zA-Z]{15,17}['\"]")
_TRIGGER_HEADER_RE = re.compile(r"trigger\s+(\w+)\s+on\s+(\w+)\s*\(([^)]*)\)", re.IGNORECASE)
_IMPLEMENTS_RE = re.compile(r"implements\s+([^{]+)", re.IGNORECASE)


def extract_field(tag: str, text: str) -> str | None:
    """Return the stripped text of the first ``<tag>...</tag>`` in ``text``, or None."""
    match = re.search(rf"<{re.escape(tag)}>([\s\S]*?)</{re.escape(tag)}>", text or "")
    if not match or not match.group(1).strip():
        return None
    return match.group(1).strip()


def _diff_lines(file_diff: FileDiff) -> list[str]:
    return [line for h in file_diff.hunks for line in h.diff.split("\n")[1:]]


def added_lines(file_diff: FileDiff) -> list[str]:
    return [re.sub(r"^\+\s?", "", line) for line in _diff_lines(file_diff) if line.strip().startswith("+")]


def removed_lines(file_diff: FileDiff) -> list[str]:
    return [line for line in _diff_lines(file_diff) if line.strip().startswith("-")]


def _basename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


# ---------------------------------------------------------------------- #
# Custom fields                                                            #
# ---------------------------------------------------------------------- #


def _picklist_values(lines: list[str]) -> str | None:
    values = None
    for line in lines:
        match = _PICKLIST_VALUE_RE.search(line)
        if match:
            values = f"{values}, {match.group(1)}" if values else match.group(1)
        match = _VALUE_SET_RE.search(line)
        if match:
            values = f"GVS:{match.group(1)}"
    return values


def build_custom_fields_doc(files: list[FileDiff]) -> str | None:
    """Tables of new custom fields (with their settings) and changed ones (with the attributes touched)."""
    new_rows, changed_rows = [], []
    for f in files:
        match = _FIELD_PATH_RE.search(f.filename)
        if not match:
            continue
        obj, fld = match.group(1), match.group(2)
        added = added_lines(f)
        if f.status == "added":
            xml = "\n".join(added)
            cells = [
                obj,
                fld,
                extract_field("label", xml) or "",
                extract_field("type", xml) or "n/a",
                extract_field("required", xml) or "n/a",
                extract_field("defaultValue", xml) or "n/a",
                _picklist_values(added) or "n/a",
            ]
            new_rows.append("| " + " | ".join(cells) + " |")
        elif f.status == "modified":
            removed = removed_lines(f)
            changed = [t for t in _TRACKED_FIELD_TAGS if any(f"<{t}>" in line for line in added + removed)]
            if changed:
                changed_rows.append(f"| {obj} | {fld} | {', '.join(changed)} |")

    if not new_rows and not changed_rows:
        return None

    out = []
    if new_rows:
        out.append("### New Custom Fields")
        out.append("| Object | Field | Label | Type | Required | Default | Values |")
        out.append("|---|---|---|---|:---:|---|---|")
        out.extend(new_rows)
        out.append("")
    if changed_rows:
        out.append("### Changed Custom Fields")
        out.append("| Object | Field | Attributes Changed |")
        out.append("|---|---|---|")
        out.extend(changed_rows)
        out.append("")
    return "\n".join(out)


# ---------------------------------------------------------------------- #
# Flows                                                                    #
# ---------------------------------------------------------------------- #


def build_flows_doc(files: list[FileDiff]) -> str | None:
    rows = []
    for f in files:
        if not ("/flows/" in f.filename and f.filename.endswith(".flow-meta.xml")):
            continue
        name = _basename(f.filename)[: -len(".flow-meta.xml")]
        added = added_lines(f)
        xml = "\n".join(added)

        flow_type = extract_field("processType", xml) or extract_field("flowType", xml) or "n/a"
        trigger_type = extract_field("recordTriggerType", xml) or extract_field("triggerType", xml)
        trigger_object = extract_field("object", xml) or extract_field("sObject", xml)
        trigger = " on ".join(p for p in (trigger_type, trigger_object) if p) or "n/a"
        entry = extract_field("conditionLogic", xml) or extract_field("triggerConditions", xml) or "-"
        has_fault = any("<faultConnector" in line for line in added)
        has_loop = any(_LOOP_RE.search(line) for line in added)
        has_dml = any(_FLOW_DML_RE.search(line) for line in added)
        dml_in_loops = "yes" if has_loop and has_dml else "maybe" if has_dml else "no"

        rows.append(f"| {name} | {flow_type} | {trigger} | {entry} | {'yes' if has_fault else 'no'} | {dml_in_loops} |")

    if not rows:
        return None
    out = ["### Flow Documentation"]
    out.append("| Flow API Name | Type | Trigger | Entry conditions | Fault connectors | DML-in-loops |")
    out.append("|---|---|---|---|:---:|:---:|")
    out.extend(rows)
    out.append("")
    return "\n".join(out)


# ---------------------------------------------------------------------- #
# Apex classes and triggers                                                #
# ---------------------------------------------------------------------- #


def _code_signals(added: list[str]) -> tuple[str, str, str]:
    content = "\n".join(added)
    lower = content.lower()
    has_loop = bool(_FOR_RE.search(lower))
    touches_data = bool(_DML_RE.search(lower) or _SOQL_RE.search(lower))
    dml_in_loops = "maybe" if has_loop and touches_data else "no"
    strip_inaccessible = "yes" if "Security.stripInaccessible" in content else "no"
    hard_coded_ids = "yes" if _HARD_CODED_ID_RE.search(content) else "no"
    return strip_inaccessible, dml_in_loops, hard_coded_ids


def _sharing(declaration: str) -> str:
    if re.search(r"without\s+sharing", declaration, re.IGNORECASE):
        return "without sharing"
    if re.search(r"with\s+sharing", declaration, re.IGNORECASE):
        return "with sharing"
    return "unspecified"


def _implements(declaration: str, content: str) -> str:
    match = _IMPLEMENTS_RE.search(declaration)
    if match:
        return " ".join(match.group(1).split())
    flags = [name for name in ("Database.Batchable", "Queueable", "Schedulable") if name.lower() in content.lower()]
    return ", ".join(flags) or "-"


def build_apex_doc(files: list[FileDiff]) -> str | None:
    class_names = {_basename(f.filename).lower() for f in files if "/classes/" in f.filename.lower()}

    def has_test(name: str) -> str:
        return "yes" if f"{name}test.cls".lower() in class_names else "no"

    classes, triggers = [], []
    for f in files:
        lower = f.filename.lower()
        is_class = "/classes/" in lower and lower.endswith(".cls")
        is_trigger = "/triggers/" in lower and lower.endswith(".trigger")
        if not (is_class or is_trigger):
            continue
        name = re.sub(r"\.(cls|trigger)$", "", _basename(f.filename), flags=re.IGNORECASE)
        added = added_lines(f)
        strip_inaccessible, dml_in_loops, hard_coded_ids = _code_signals(added)
        signals = f"{has_test(name)} | {strip_inaccessible} | {dml_in_loops} | {hard_coded_ids}"

        if is_class:
            declaration = next((line for line in added if re.search(r"\bclass\b", line)), "")
            impl = _implements(declaration, "\n".join(added))
            classes.append((name, f"| {name} | {_sharing(declaration)} | {impl} | {signals} |"))
        else:
            header = next((line for line in added if re.search(r"\btrigger\b", line, re.IGNORECASE)), "")
            match = _TRIGGER_HEADER_RE.search(header)
            obj = match.group(2) if match else "-"
            events = " ".join(match.group(3).split()) if match and match.group(3).strip() else "-"
            triggers.append((name, f"| {name} | {obj} | {events} | {signals} |"))

    if not classes and not triggers:
        return None

    out = ["### Apex Documentation"]
    if classes:
        out.append("| Class | Sharing | Implements | Tests in PR | stripInaccessible | DML/SOQL-in-loops | Hard-coded IDs |")
        out.append("|---|---|---|:---:|:---:|:---:|:---:|")
        out.extend(row for _, row in sorted(classes))
        out.append("")
    if triggers:
        out.append("| Trigger | Object | Events | Tests in PR | stripInaccessible | DML/SOQL-in-loops | Hard-coded IDs |")
        out.append("|---|---|---|:---:|:---:|:---:|:---:|")
        out.extend(row for _, row in sorted(triggers))
        out.append("")
    return "\n".join(out)


def build_documentation(files: list[FileDiff]) -> str | None:
    """All documentation sections for ``files`` joined together, or None when there are none."""
    sections = [build_custom_fields_doc(files), build_flows_doc(files), build_apex_doc(files)]
    combined = "\n\n".join(s for s in sections if s).strip()
    if not combined:
        return None
    return f"{_DOC_HEADING}\n{combined}"
