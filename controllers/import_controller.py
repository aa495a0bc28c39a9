# controllers/import_controller.py
from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel
from typing import List

from common.catalog_store import ScriptCatalog
from common.models import SectionMatch
from common.stores import get_catalog
from data_processing.validators import InvariantError
from controllers.errors import domain_errors
from services.import_service import apply_import, preview_import

router = APIRouter()


class PreviewIn(BaseModel):
    text: str


class ApplyIn(BaseModel):
    matches: List[SectionMatch]
    replace: bool = False


@router.post("/scripts/{script_id}/import/preview")
def import_preview(script_id: str, payload: PreviewIn, catalog: ScriptCatalog = Depends(get_catalog)):
    with domain_errors():
        script = catalog.get_script(script_id)
    preview = preview_import(payload.text, script.sections)
    return {"ok": True, "data": preview.model_dump(mode="json")}


@router.post("/scripts/{script_id}/import/apply")
def import_apply(
    script_id: str,
    payload: ApplyIn = Body(
        ...,
        examples=[{
            "replace": False,
            "matches": [{
                "parsed": {"header": "A. Intro", "normalized_header": "a intro", "questions": ["q1", "q2"]},
                "matched_section_id": "<section id>",
                "match_type": "exact",
                "confidence": 1.0,
            }],
        }],
    ),
    catalog: ScriptCatalog = Depends(get_catalog),
):
    with domain_errors():
        script = catalog.get_script(script_id)
        own_sections = {s.id for s in script.sections}
        foreign = [m.matched_section_id for m in payload.matches if m.matched_section_id and m.matched_section_id not in own_sections]
        if foreign:
            raise InvariantError("SECTION_NOT_IN_SCRIPT", f"sections {foreign} do not belong to script {script_id}")

    result = apply_import(catalog, payload.matches, replace_mode=payload.replace)
    return {
        "ok": not result.failures,
        "code": "IMPORT_OK" if not result.failures else "IMPORT_PARTIAL",
        "data": result.model_dump(mode="json"),
    }
