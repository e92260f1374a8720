"""Exercise categories, their measurement fields and built-in exercise names."""

from algorithms.weight_converter import WeightConverter

STRENGTH = "Strength Training"
CARDIO = "Cardio"
FLEXIBILITY = "Flexibility"
BODYWEIGHT = "Bodyweight"
FUNCTIONAL = "Functional"

EXERCISE_TYPES = (STRENGTH, CARDIO, FLEXIBILITY, BODYWEIGHT, FUNCTIONAL)

MEASUREMENT_FIELDS = {
    STRENGTH: ("sets", "reps", "weight"),
    CARDIO: ("duration", "distance", "calories"),
    FLEXIBILITY: ("duration", "sets", "hold_time"),
    BODYWEIGHT: ("sets", "reps"),
    FUNCTIONAL: ("sets", "reps", "weight"),
}

BUILTIN_EXERCISES = {
    STRENGTH: [
        "Bench Press",
        "Squat",
        "Deadlift",
        "Shoulder Press",
        "Lat Pulldown",
        "Bicep Curl",
        "Tricep Extension",
        "Leg Press",
        "Leg Extension",
        "Leg Curl",
        "Chest Fly",
        "Chest Row",
        "T-Bar Row",
        "Cable Row",
        "Barbell Row",
    ],
    CARDIO: [
        "Treadmill",
        "Elliptical",
        "Stair Climber",
        "Exercise Bike",
        "Rowing Machine",
        "Jump Rope",
        "Swimming",
        "Running",
        "Cycling",
    ],
    FLEXIBILITY: [
        "Hamstring Stretch",
        "Quad Stretch",
        "Shoulder Stretch",
        "Hip Flexor Stretch",
        "Calf Stretch",
        "Yoga",
        "Pilates",
    ],
    BODYWEIGHT: [
        "Push-up",
        "Pull-up",
        "Dip",
        "Plank",
        "Sit-up",
        "Crunch",
        "Burpee",
        "Lunge",
        "Squat Jump",
        "Mountain Climber",
    ],
    FUNCTIONAL: [
        "Kettlebell Swing",
        "Battle Ropes",
        "Box Jump",
        "Medicine Ball Throw",
        "TRX Suspension Training",
        "Sled Push/Pull",
        "Farmer's Walk",
    ],
}


def is_builtin(name: str, exercise_type: str) -> bool:
    return name in BUILTIN_EXERCISES.get(exercise_type, [])


def primary_metrics(exercise: dict, unit: str = "kg") -> str:
    """Return a one-line summary of the measurements relevant to the type."""
    exercise_type = exercise.get("exercise_type", STRENGTH)
    if exercise_type in (STRENGTH, FUNCTIONAL):
        weight = WeightConverter.format(exercise["weight"], unit)
        return f"{exercise['sets']} sets × {exercise['reps']} reps × {weight}"
    if exercise_type == CARDIO:
        return (
            f"{exercise['duration']} min, {exercise['distance']:.1f} km, "
            f"{exercise['calories']} cal"
        )
    if exercise_type == FLEXIBILITY:
        return (
            f"{exercise['duration']} min, {exercise['sets']} sets, "
            f"{exercise['hold_time']} sec hold"
        )
    return f"{exercise['sets']} sets × {exercise['reps']} reps"
