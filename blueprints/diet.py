from flask import Blueprint, jsonify

from blueprints.auth import login_required
from blueprints.common import json_body
from services.meal_plan import validate_targets, generate_meal_plan

diet_bp = Blueprint('diet', __name__, url_prefix='/diet')


@diet_bp.route('/meal-plan', methods=['POST'])
@login_required
def meal_plan():
    """Five-meal day plan from calorie, macro and hydration targets"""
    targets = validate_targets(json_body())
    plan = generate_meal_plan(
        target_calories=targets['targetCalories'],
        protein=targets['protein'],
        carbs=targets['carbs'],
        fats=targets['fats'],
        hydration=targets['hydration'],
        goal=targets['goal'],
    )
    return jsonify(plan)
