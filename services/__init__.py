"""
Domain services for the academy backend.
Bracket generation, match results, chat broadcast and meal planning live here
so blueprints stay thin.
"""
