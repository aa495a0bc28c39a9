# controllers/scripts_controller.py
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from typing import List, Optional

from common.catalog_store import ScriptCatalog
from common.models import ScriptExport
from common.stores import get_catalog
from controllers.errors import domain_errors
from services.import_service import bulk_add_questions

router = APIRouter()


class ScriptIn(BaseModel):
    name: str
    description: Optional[str] = None
    is_template: bool = False
    default_sections: bool = False


class ScriptPatch(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    is_template: Optional[bool] = None


class SectionIn(BaseModel):
    title: str
    order: Optional[int] = None


class SectionPatch(BaseModel):
    title: Optional[str] = None
    order: Optional[int] = None


class QuestionIn(BaseModel):
    text: str
    order: Optional[int] = None
    tags: List[str] = Field(default_factory=list)


class QuestionPatch(BaseModel):
    text: Optional[str] = None
    order: Optional[int] = None
    tags: Optional[List[str]] = None


class OrderIn(BaseModel):
    ids: List[str]


class MoveIn(BaseModel):
    section_id: str
    index: int


class BulkIn(BaseModel):
    text: str


# ---------- scripts ----------

@router.get("/scripts")
def list_scripts(catalog: ScriptCatalog = Depends(get_catalog)):
    return {"ok": True, "data": {"scripts": [s.model_dump(mode="json", exclude={"sections"}) for s in catalog.list_scripts()]}}


@router.post("/scripts")
def create_script(payload: ScriptIn, catalog: ScriptCatalog = Depends(get_catalog)):
    with domain_errors():
        script = catalog.create_script(
            payload.name, payload.description, payload.is_template, default_sections=payload.default_sections
        )
    return {"ok": True, "data": script.model_dump(mode="json")}


@router.post("/scripts/import")
def import_script(payload: ScriptExport, catalog: ScriptCatalog = Depends(get_catalog)):
    with domain_errors():
        script = catalog.import_script(payload)
    return {"ok": True, "data": script.model_dump(mode="json")}


@router.get("/scripts/{script_id}")
def get_script(script_id: str, catalog: ScriptCatalog = Depends(get_catalog)):
    with domain_errors():
        return {"ok": True, "data": catalog.get_script(script_id).model_dump(mode="json")}


@router.patch("/scripts/{script_id}")
def update_script(script_id: str, payload: ScriptPatch, catalog: ScriptCatalog = Depends(get_catalog)):
    with domain_errors():
        script = catalog.update_script(script_id, payload.name, payload.description, payload.is_template)
    return {"ok": True, "data": script.model_dump(mode="json")}


@router.delete("/scripts/{script_id}")
def delete_script(script_id: str, catalog: ScriptCatalog = Depends(get_catalog)):
    with domain_errors():
        catalog.delete_script(script_id)
    return {"ok": True, "code": "SCRIPT_DELETED"}


@router.post("/scripts/{script_id}/duplicate")
def duplicate_script(script_id: str, catalog: ScriptCatalog = Depends(get_catalog)):
    with domain_errors():
        script = catalog.duplicate_script(script_id)
    return {"ok": True, "data": script.model_dump(mode="json")}


@router.get("/scripts/{script_id}/export")
def export_script(script_id: str, catalog: ScriptCatalog = Depends(get_catalog)):
    with domain_errors():
        exported = catalog.export_script(script_id)
    return {"ok": True, "data": exported.model_dump(mode="json")}


# ---------- sections ----------

@router.post("/scripts/{script_id}/sections")
def create_section(script_id: str, payload: SectionIn, catalog: ScriptCatalog = Depends(get_catalog)):
    with domain_errors():
        section = catalog.create_section(script_id, payload.title, payload.order)
    return {"ok": True, "data": section.model_dump(mode="json")}


@router.put("/scripts/{script_id}/sections/order")
def reorder_sections(script_id: str, payload: OrderIn, catalog: ScriptCatalog = Depends(get_catalog)):
    with domain_errors():
        script = catalog.reorder_sections(script_id, payload.ids)
    return {"ok": True, "data": script.model_dump(mode="json")}


@router.patch("/sections/{section_id}")
def update_section(section_id: str, payload: SectionPatch, catalog: ScriptCatalog = Depends(get_catalog)):
    with domain_errors():
        section = catalog.update_section(section_id, payload.title, payload.order)
    return {"ok": True, "data": section.model_dump(mode="json")}


@router.delete("/sections/{section_id}")
def delete_section(section_id: str, catalog: ScriptCatalog = Depends(get_catalog)):
    with domain_errors():
        catalog.delete_section(section_id)
    return {"ok": True, "code": "SECTION_DELETED"}


# ---------- questions ----------

@router.post("/sections/{section_id}/questions")
def create_question(section_id: str, payload: QuestionIn, catalog: ScriptCatalog = Depends(get_catalog)):
    with domain_errors():
        question = catalog.create_question(section_id, payload.text, payload.order, payload.tags)
    return {"ok": True, "data": question.model_dump(mode="json")}


@router.post("/sections/{section_id}/questions/bulk")
def bulk_create_questions(section_id: str, payload: BulkIn, catalog: ScriptCatalog = Depends(get_catalog)):
    with domain_errors():
        added = bulk_add_questions(catalog, section_id, payload.text)
        section = catalog.get_section(section_id)
    return {"ok": True, "data": {"added": added, "section": section.model_dump(mode="json")}}


@router.put("/sections/{section_id}/questions/order")
def reorder_questions(section_id: str, payload: OrderIn, catalog: ScriptCatalog = Depends(get_catalog)):
    with domain_errors():
        section = catalog.reorder_questions(section_id, payload.ids)
    return {"ok": True, "data": section.model_dump(mode="json")}


@router.patch("/questions/{question_id}")
def update_question(question_id: str, payload: QuestionPatch, catalog: ScriptCatalog = Depends(get_catalog)):
    with domain_errors():
        question = catalog.update_question(question_id, payload.text, payload.order, payload.tags)
    return {"ok": True, "data": question.model_dump(mode="json")}


@router.post("/questions/{question_id}/move")
def move_question(question_id: str, payload: MoveIn, catalog: ScriptCatalog = Depends(get_catalog)):
    with domain_errors():
        question = catalog.move_question(question_id, payload.section_id, payload.index)
    return {"ok": True, "data": question.model_dump(mode="json")}


@router.delete("/questions/{question_id}")
def delete_question(question_id: str, catalog: ScriptCatalog = Depends(get_catalog)):
    with domain_errors():
        catalog.delete_question(question_id)
    return {"ok": True, "code": "QUESTION_DELETED"}
