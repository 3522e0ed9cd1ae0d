# assessment_engine/api/v1/endpoints/questions.py
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from assessment_engine.core.security import Actor, get_current_teacher
from assessment_engine.db.deps import get_db, get_membership
from assessment_engine.models.question import Question
from assessment_engine.schemas.question import (
    QuestionCreate,
    QuestionPublic,
    QuestionReorder,
    QuestionUpdate,
)
from assessment_engine.services import assessment_service, question_bank_service
from assessment_engine.services.membership import MembershipChecker, ensure_room_access

router = APIRouter(prefix="/questions", tags=["questions"])


def _get_owned_question(
    db: Session,
    membership: MembershipChecker,
    teacher: Actor,
    question_id: int,
) -> Question:
    question = question_bank_service.get_question(db, question_id)
    ensure_room_access(membership, teacher, question.assessment.room_id)
    return question


@router.post(
    "/assessment/{assessment_id}",
    response_model=QuestionPublic,
    status_code=status.HTTP_201_CREATED,
)
def create_question(
    assessment_id: int,
    obj_in: QuestionCreate,
    db: Session = Depends(get_db),
    membership: MembershipChecker = Depends(get_membership),
    current_teacher: Actor = Depends(get_current_teacher),
):
    assessment = assessment_service.get_assessment(db, assessment_id)
    ensure_room_access(membership, current_teacher, assessment.room_id)
    return question_bank_service.create_question(db, assessment=assessment, obj_in=obj_in)


@router.get("/assessment/{assessment_id}", response_model=List[QuestionPublic])
def list_questions(
    assessment_id: int,
    db: Session = Depends(get_db),
    membership: MembershipChecker = Depends(get_membership),
    current_teacher: Actor = Depends(get_current_teacher),
):
    """
    Whole question bank with answer keys. Students get questions through
    their attempts only.
    """
    assessment = assessment_service.get_assessment(db, assessment_id)
    ensure_room_access(membership, current_teacher, assessment.room_id)
    return question_bank_service.list_questions(db, assessment_id=assessment_id)


@router.put("/assessment/{assessment_id}/order", response_model=List[QuestionPublic])
def reorder_questions(
    assessment_id: int,
    obj_in: QuestionReorder,
    db: Session = Depends(get_db),
    membership: MembershipChecker = Depends(get_membership),
    current_teacher: Actor = Depends(get_current_teacher),
):
    assessment = assessment_service.get_assessment(db, assessment_id)
    ensure_room_access(membership, current_teacher, assessment.room_id)
    return question_bank_service.reorder_questions(
        db, assessment=assessment, items=obj_in.items
    )


@router.get("/{question_id}", response_model=QuestionPublic)
def get_question(
    question_id: int,
    db: Session = Depends(get_db),
    membership: MembershipChecker = Depends(get_membership),
    current_teacher: Actor = Depends(get_current_teacher),
):
    return _get_owned_question(db, membership, current_teacher, question_id)


@router.patch("/{question_id}", response_model=QuestionPublic)
def update_question(
    question_id: int,
    obj_in: QuestionUpdate,
    db: Session = Depends(get_db),
    membership: MembershipChecker = Depends(get_membership),
    current_teacher: Actor = Depends(get_current_teacher),
):
    question = _get_owned_question(db, membership, current_teacher, question_id)
    return question_bank_service.update_question(db, db_obj=question, obj_in=obj_in)


@router.delete("/{question_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_question(
    question_id: int,
    db: Session = Depends(get_db),
    membership: MembershipChecker = Depends(get_membership),
    current_teacher: Actor = Depends(get_current_teacher),
):
    question = _get_owned_question(db, membership, current_teacher, question_id)
    question_bank_service.delete_question(db, db_obj=question)
