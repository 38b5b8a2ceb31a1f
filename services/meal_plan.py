"""Rule-based daily meal plans built from nutrition targets."""

from __future__ import annotations

import logging

from errors import ValidationError

logger = logging.getLogger(__name__)

GOAL_WEIGHT_LOSS = 'weight_loss'
GOAL_MUSCLE_GAIN = 'muscle_gain'
GOAL_MAINTENANCE = 'maintenance'
GOAL_PERFORMANCE = 'performance'
PLAYER_GOALS = (GOAL_WEIGHT_LOSS, GOAL_MUSCLE_GAIN, GOAL_MAINTENANCE, GOAL_PERFORMANCE)

# field -> (min, max)
TARGET_BOUNDS = {
    'targetCalories': (1000, 5000),
    'protein': (50, 300),
    'carbs': (100, 600),
    'fats': (30, 200),
    'hydration': (1, 8),
}

MEALS = ('breakfast', 'snack1', 'lunch', 'snack2', 'dinner')
CALORIE_SPLIT = {
    'breakfast': 0.25,
    'snack1': 0.10,
    'lunch': 0.30,
    'snack2': 0.10,
    'dinner': 0.25,
}

HIGH_PROTEIN = 150
HIGH_CARBS = 400
MEDIUM_CARBS = 300
HIGH_HYDRATION = 4

ELECTROLYTE_DRINKS = {
    'breakfast': 'Electrolyte drink',
    'snack1': 'Water with electrolytes',
    'lunch': 'Hydration supplement',
    'snack2': 'Electrolyte drink',
    'dinner': 'Water with electrolytes',
}


def _carb_tier(carbs: float, high: list[str], medium: list[str], low: list[str]) -> list[str]:
    if carbs > HIGH_CARBS:
        return high
    if carbs > MEDIUM_CARBS:
        return medium
    return low


def breakfast_items(protein: float, carbs: float, goal: str) -> list[str]:
    if protein > HIGH_PROTEIN:
        items = ['Scrambled eggs (3 whole eggs)', 'Greek yogurt (200g)']
    else:
        items = ['Scrambled eggs (2 whole eggs)', 'Greek yogurt (150g)']
    items += _carb_tier(
        carbs,
        ['Oatmeal (80g dry)', 'Whole grain toast (2 slices)', 'Banana'],
        ['Oatmeal (60g dry)', 'Whole grain toast (1 slice)'],
        ['Oatmeal (50g dry)'],
    )
    items.append('Almonds (20g)')
    if goal == GOAL_MUSCLE_GAIN:
        items.append('Protein shake')
    return items


def lunch_items(protein: float, carbs: float, goal: str) -> list[str]:
    if protein > HIGH_PROTEIN:
        items = ['Grilled chicken breast (200g)', 'Tuna steak (150g)']
    else:
        items = ['Grilled chicken breast (150g)']
    items += _carb_tier(
        carbs,
        ['Brown rice (150g cooked)', 'Sweet potato (200g)'],
        ['Brown rice (120g cooked)', 'Sweet potato (150g)'],
        ['Brown rice (100g cooked)'],
    )
    items += ['Steamed broccoli', 'Mixed green salad', 'Olive oil dressing (1 tbsp)']
    if goal == GOAL_MUSCLE_GAIN:
        items.append('Quinoa (100g cooked)')
    return items


def dinner_items(protein: float, carbs: float, goal: str) -> list[str]:
    if protein > HIGH_PROTEIN:
        items = ['Salmon fillet (200g)', 'Lean beef (150g)']
    else:
        items = ['Salmon fillet (150g)']
    items += _carb_tier(
        carbs,
        ['Whole wheat pasta (120g cooked)', 'Roasted sweet potato (150g)'],
        ['Whole wheat pasta (100g cooked)'],
        ['Quinoa (80g cooked)'],
    )
    items += ['Steamed vegetables (mixed)', 'Green beans', 'Avocado (half)']
    if goal == GOAL_WEIGHT_LOSS:
        items.append('Light dressing')
    return items


def snack_items(protein: float, carbs: float, goal: str) -> list[str]:
    if protein > HIGH_PROTEIN:
        items = ['Protein shake', 'Hard-boiled eggs (2)']
    else:
        items = ['Greek yogurt (100g)']
    items += _carb_tier(
        carbs,
        ['Banana', 'Apple', 'Oatmeal bar'],
        ['Banana', 'Apple'],
        ['Apple'],
    )
    items.append('Almonds (15g)')
    if goal == GOAL_MUSCLE_GAIN:
        items.append('Protein bar')
    elif goal == GOAL_WEIGHT_LOSS:
        items.append('Low-fat cottage cheese')
    return items


MEAL_BUILDERS = {
    'breakfast': breakfast_items,
    'snack1': snack_items,
    'lunch': lunch_items,
    'snack2': snack_items,
    'dinner': dinner_items,
}


def validate_targets(data: dict) -> dict:
    """Check the request body and return the numeric targets plus goal."""
    errors = []
    targets = {}
    for field, (low, high) in TARGET_BOUNDS.items():
        value = data.get(field)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            errors.append(f"{field} must be a number")
        elif not low <= value <= high:
            errors.append(f"{field} must be between {low} and {high}")
        else:
            targets[field] = value

    goal = data.get('goal')
    if goal not in PLAYER_GOALS:
        errors.append(f"goal must be one of: {', '.join(PLAYER_GOALS)}")
    if errors:
        raise ValidationError(errors=errors)

    targets['goal'] = goal
    return targets


def generate_meal_plan(
    target_calories: float,
    protein: float,
    carbs: float,
    fats: float,
    hydration: float,
    goal: str,
) -> dict:
    """Build the five meals of a day.

    Weight-loss plans size their carbohydrate portions on 80% of the carb
    target. Every meal ends with a drink chosen from the hydration target.
    """
    adjusted_carbs = round(carbs * 0.8) if goal == GOAL_WEIGHT_LOSS else carbs

    plan = {}
    for meal in MEALS:
        items = MEAL_BUILDERS[meal](protein, adjusted_carbs, goal)
        items.append(ELECTROLYTE_DRINKS[meal] if hydration > HIGH_HYDRATION else 'Water')
        plan[meal] = items

    plan['calories'] = {meal: round(target_calories * CALORIE_SPLIT[meal]) for meal in MEALS}
    logger.info(
        "Meal plan generated for %s kcal (%s): %d breakfast items, %d lunch items",
        target_calories,
        goal,
        len(plan['breakfast']),
        len(plan['lunch']),
    )
    return plan
