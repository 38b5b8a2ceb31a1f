"""
Tests for the meal plan generator and the /diet/meal-plan route
"""
import pytest

from errors import ValidationError
from services.meal_plan import MEALS, generate_meal_plan, validate_targets


def _payload(**overrides):
    payload = {
        'targetCalories': 2800,
        'protein': 140,
        'carbs': 350,
        'fats': 80,
        'hydration': 3,
        'goal': 'maintenance',
    }
    payload.update(overrides)
    return payload


class TestGenerator:
    def test_high_targets_pick_large_portions(self):
        plan = generate_meal_plan(3200, 180, 450, 90, 3, 'performance')

        assert plan['breakfast'][:2] == ['Scrambled eggs (3 whole eggs)', 'Greek yogurt (200g)']
        assert 'Oatmeal (80g dry)' in plan['breakfast']
        assert 'Tuna steak (150g)' in plan['lunch']
        assert 'Lean beef (150g)' in plan['dinner']

    def test_weight_loss_sizes_carbs_down(self):
        plan = generate_meal_plan(2200, 120, 450, 60, 3, 'weight_loss')

        # 450g target is sized on 360g: the medium tier
        assert 'Oatmeal (60g dry)' in plan['breakfast']
        assert 'Light dressing' in plan['dinner']
        assert 'Low-fat cottage cheese' in plan['snack1']

    def test_muscle_gain_extras(self):
        plan = generate_meal_plan(3000, 120, 250, 80, 3, 'muscle_gain')

        assert 'Protein shake' in plan['breakfast']
        assert 'Quinoa (100g cooked)' in plan['lunch']
        assert plan['snack2'][-2] == 'Protein bar'

    def test_hydration_drinks(self):
        dry = generate_meal_plan(2500, 120, 250, 80, 4, 'maintenance')
        wet = generate_meal_plan(2500, 120, 250, 80, 5, 'maintenance')

        assert {dry[meal][-1] for meal in MEALS} == {'Water'}
        assert wet['breakfast'][-1] == 'Electrolyte drink'
        assert wet['lunch'][-1] == 'Hydration supplement'

    def test_calorie_split(self):
        plan = generate_meal_plan(2000, 120, 250, 80, 3, 'maintenance')

        assert plan['calories'] == {
            'breakfast': 500,
            'snack1': 200,
            'lunch': 600,
            'snack2': 200,
            'dinner': 500,
        }


class TestValidation:
    def test_valid_targets(self):
        targets = validate_targets(_payload())
        assert targets['targetCalories'] == 2800
        assert targets['goal'] == 'maintenance'

    def test_collects_every_error(self):
        with pytest.raises(ValidationError) as info:
            validate_targets(_payload(protein=20, hydration='lots', goal='bulk'))

        assert len(info.value.errors) == 3

    def test_booleans_rejected(self):
        with pytest.raises(ValidationError):
            validate_targets(_payload(fats=True))


class TestMealPlanRoute:
    def test_returns_plan(self, login, player):
        response = login(player).post('/diet/meal-plan', json=_payload())

        assert response.status_code == 200
        body = response.get_json()
        assert set(body) == set(MEALS) | {'calories'}

    @pytest.mark.parametrize('field, value', [
        ('targetCalories', 900),
        ('carbs', 601),
        ('goal', 'bulk'),
    ])
    def test_out_of_bounds(self, login, player, field, value):
        response = login(player).post('/diet/meal-plan', json=_payload(**{field: value}))

        assert response.status_code == 400
        assert response.get_json()['errors']

    def test_login_required(self, client):
        assert client.post('/diet/meal-plan', json=_payload()).status_code == 401
