"""Domain services for FamilyBudget."""
