"""
XLIFF 1.2 export and import of job item content.

Each job item becomes a <group>; each source text a <trans-unit> whose id
is "{job_item_id}][{data_key}". OHT returns the same document with
<target> elements filled in.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Any, Dict, Iterable

from oht_gateway.gateway.models import Job, JobItem

XLIFF_NS = "urn:oasis:names:tc:xliff:document:1.2"
XML_LANG = "{http://www.w3.org/XML/1998/namespace}lang"
KEY_SEPARATOR = "]["
TOOL_ID = "oht-gateway"

ET.register_namespace("", XLIFF_NS)


def _tag(name: str) -> str:
    return f"{{{XLIFF_NS}}}{name}"


class XliffConverter:
    """Serializes job items to XLIFF and reads translated XLIFF back."""

    def export_item(self, job: Job, item: JobItem) -> str:
        return self.export_job(job, [item])

    def export_job(self, job: Job, items: Iterable[JobItem]) -> str:
        root = ET.Element(_tag("xliff"), {"version": "1.2"})
        file_el = ET.SubElement(root, _tag("file"), {
            "original": f"job-{job.id}",
            "source-language": job.source_language,
            "target-language": job.target_language,
            "datatype": "plaintext",
            "date": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        })
        header = ET.SubElement(file_el, _tag("header"))
        phase_group = ET.SubElement(header, _tag("phase-group"))
        ET.SubElement(phase_group, _tag("phase"), {
            "tool-id": TOOL_ID,
            "phase-name": "extraction",
            "process-name": "extraction",
            "job-id": str(job.id),
        })
        ET.SubElement(header, _tag("tool"), {"tool-id": TOOL_ID, "tool-name": "OHT Gateway"})
        body = ET.SubElement(file_el, _tag("body"))

        exported = 0
        for item in items:
            if not item.source_data:
                raise ValueError(f"job item {item.id} has no source content")
            group = ET.SubElement(body, _tag("group"), {"id": str(item.id)})
            if item.label:
                group.set("resname", item.label)
            for key, text in item.source_data.items():
                unit_id = f"{item.id}{KEY_SEPARATOR}{key}"
                unit = ET.SubElement(group, _tag("trans-unit"), {"id": unit_id, "resname": unit_id})
                source = ET.SubElement(unit, _tag("source"), {XML_LANG: job.source_language})
                source.text = str(text)
                ET.SubElement(unit, _tag("target"), {XML_LANG: job.target_language})
            exported += 1

        if not exported:
            raise ValueError(f"job {job.id} has no items to export")

        return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(root, encoding="unicode")

    def import_translation(self, content: bytes | str) -> Dict[int, Dict[str, Any]]:
        """
        Parse a translated XLIFF document.

        Returns:
            {job_item_id: {data_key: translated_text}}; units without a
            target text are left out.

        Raises:
            ValueError: If the content is not a readable XLIFF document.
        """
        if isinstance(content, str):
            content = content.encode("utf-8")
        try:
            root = ET.fromstring(content)
        except ET.ParseError as e:
            raise ValueError(f"invalid XLIFF document: {e}")

        if root.tag not in (_tag("xliff"), "xliff"):
            raise ValueError(f"unexpected root element {root.tag}")

        data: Dict[int, Dict[str, Any]] = {}
        for unit in root.iter():
            if unit.tag not in (_tag("trans-unit"), "trans-unit"):
                continue
            unit_id = unit.get("id", "")
            item_part, sep, key = unit_id.partition(KEY_SEPARATOR)
            if not sep or not item_part.isdigit() or not key:
                continue
            target = unit.find(_tag("target"))
            if target is None:
                target = unit.find("target")
            if target is None:
                continue
            text = "".join(target.itertext())
            if not text:
                continue
            data.setdefault(int(item_part), {})[key] = text

        return data
