from flask import Blueprint, jsonify, g
import logging

from errors import ConflictError, NotFoundError, PermissionDenied, ValidationError
from models import db, AcademyStaff, User, ROLE_OWNER, ROLE_REFEREE, ROLE_COACH
from blueprints.auth import login_required, roles_required
from blueprints.common import json_body, require_fields, get_or_404, parse_int

staff_bp = Blueprint('staff', __name__, url_prefix='/staff')
logger = logging.getLogger(__name__)

# URL segment -> role a linked user must hold
STAFF_KINDS = {'referees': ROLE_REFEREE, 'coaches': ROLE_COACH}


def _academy(academy_id: int) -> User:
    academy = get_or_404(User, academy_id, 'Academy')
    if academy.role != ROLE_OWNER:
        raise NotFoundError(f"Academy {academy_id} not found")
    return academy


def _staff_query(academy_id: int, kind: str):
    return AcademyStaff.query.filter_by(academy_id=academy_id, role=STAFF_KINDS[kind])


@staff_bp.route('/<int:academy_id>/<any(referees, coaches):kind>', methods=['POST'])
@roles_required(ROLE_OWNER)
def add_staff(academy_id, kind):
    """Link a referee or coach to the current owner's academy"""
    academy = _academy(academy_id)
    if academy.id != g.current_user.id:
        raise PermissionDenied("Only the academy owner can manage its staff")

    data = json_body()
    require_fields(data, 'userId')
    user = get_or_404(User, parse_int(data['userId'], 'userId'), 'User')
    role = STAFF_KINDS[kind]
    if user.role != role:
        raise ValidationError(f"User {user.id} is not a {role}")
    if _staff_query(academy.id, kind).filter_by(user_id=user.id).first() is not None:
        raise ConflictError(f"User {user.id} already works for this academy")

    link = AcademyStaff(academy_id=academy.id, user_id=user.id, role=role)
    db.session.add(link)
    db.session.commit()
    logger.info("%s %s joined academy %s", role, user.id, academy.id)
    return jsonify(link.to_dict()), 201


@staff_bp.route('/<int:academy_id>/<any(referees, coaches):kind>', methods=['GET'])
@login_required
def list_staff(academy_id, kind):
    academy = _academy(academy_id)
    links = _staff_query(academy.id, kind).order_by(AcademyStaff.id).all()
    return jsonify([link.member.to_dict() for link in links])


@staff_bp.route('/<int:academy_id>/<any(referees, coaches):kind>/<int:user_id>', methods=['GET'])
@login_required
def check_staff(academy_id, kind, user_id):
    academy = _academy(academy_id)
    return jsonify({'member': _staff_query(academy.id, kind).filter_by(user_id=user_id).first() is not None})


@staff_bp.route('/<int:academy_id>/<any(referees, coaches):kind>/<int:user_id>', methods=['DELETE'])
@roles_required(ROLE_OWNER)
def remove_staff(academy_id, kind, user_id):
    academy = _academy(academy_id)
    if academy.id != g.current_user.id:
        raise PermissionDenied("Only the academy owner can manage its staff")

    link = _staff_query(academy.id, kind).filter_by(user_id=user_id).first()
    if link is None:
        raise NotFoundError(f"User {user_id} is not on this academy's staff")
    db.session.delete(link)
    db.session.commit()
    logger.info("User %s left academy %s", user_id, academy.id)
    return jsonify({'message': 'Staff member removed'})
