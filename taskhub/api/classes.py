"""Classes: details, roster and cascading delete."""
from fastapi import APIRouter, BackgroundTasks

from taskhub.api.deps import CurrentUser, TeacherOrAdmin
from taskhub.models.school_class import RosterUpdate, SchoolClass, SchoolClassCreate, SchoolClassUpdate
from taskhub.services import classes as class_service
from taskhub.services.storage import remove_stored_files

router = APIRouter()


async def _one(school_class: SchoolClass) -> dict:
    items = await class_service.serialize_classes([school_class])
    return items[0]


@router.get("/")
async def list_classes(user: CurrentUser):
    classes = await SchoolClass.find_all().sort("-created_at").to_list()
    return await class_service.serialize_classes(classes)


@router.post("/", status_code=201)
async def create_class(data: SchoolClassCreate, user: TeacherOrAdmin):
    school_class = await class_service.create_class(data)
    return await _one(school_class)


@router.get("/my-classes/{student_id}")
async def classes_for_student(student_id: str, user: CurrentUser):
    classes = await class_service.classes_for_student(student_id)
    return await class_service.serialize_classes(classes)


@router.get("/{class_id}")
async def get_class(class_id: str, user: CurrentUser):
    return await _one(await class_service.get_class(class_id))


@router.put("/{class_id}")
async def update_class(class_id: str, data: SchoolClassUpdate, user: TeacherOrAdmin):
    return await _one(await class_service.update_class(class_id, data))


@router.put("/{class_id}/students")
async def update_roster(class_id: str, data: RosterUpdate, user: TeacherOrAdmin):
    return await _one(await class_service.set_roster(class_id, data.student_ids))


@router.delete("/{class_id}")
async def delete_class(class_id: str, user: TeacherOrAdmin, background_tasks: BackgroundTasks):
    files = await class_service.delete_class(class_id)
    background_tasks.add_task(remove_stored_files, files)
    return {"message": "Class and everything under it deleted successfully"}
