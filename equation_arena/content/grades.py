"""Selectable grades. Grades 1-4 practise solving, 5-6 crafting."""

from ..config_schema.models import GameMode, GradeConfig


DEFAULT_GRADES = (
    GradeConfig(grade=1, label="Grade 1", mode=GameMode.SOLVER,
                description="Solve addition, subtraction, multiplication and division."),
    GradeConfig(grade=2, label="Grade 2", mode=GameMode.SOLVER),
    GradeConfig(grade=3, label="Grade 3", mode=GameMode.SOLVER),
    GradeConfig(grade=4, label="Grade 4", mode=GameMode.SOLVER),
    GradeConfig(grade=5, label="Grade 5", mode=GameMode.CRAFTER,
                description="Build your own equations with parentheses, fractions and decimals."),
    GradeConfig(grade=6, label="Grade 6", mode=GameMode.CRAFTER),
)
