import argparse
import asyncio
import datetime
import sys

from algorithms.weight_converter import WeightConverter
from app_context import AppContext
from errors import ProgressBuddyError
from exercise_library import STRENGTH, CARDIO, BODYWEIGHT, primary_metrics
from widget_service import CalendarWidgetProvider


def export_backup(ctx: AppContext, out: str) -> None:
    document = ctx.backup.export()
    if out == "-":
        print(document)
        return
    with open(out, "w", encoding="utf-8") as f:
        f.write(document)
    print(f"Exported {len(ctx.workouts.workouts)} workouts to {out}")


def restore_backup(ctx: AppContext, src: str, assume_yes: bool = False) -> None:
    with open(src, "r", encoding="utf-8") as f:
        document = f.read()
    ctx.backup.parse(document)
    if not assume_yes:
        answer = input("This will replace all local workouts. Continue? [y/N] ")
        if answer.strip().lower() not in {"y", "yes"}:
            print("Restore cancelled")
            return
    count = ctx.backup.restore(document)
    print(f"Restored {count} workouts")


def upload_backup(ctx: AppContext, identifier: str | None) -> None:
    ctx.cloud.backup(identifier)
    print("Backup uploaded")


def download_backup(
    ctx: AppContext, identifier: str | None, out: str | None, restore: bool
) -> None:
    if restore:
        count = ctx.cloud.restore_from_cloud(identifier)
        print(f"Restored {count} workouts")
        return
    document = ctx.cloud.download(identifier or ctx.cloud.saved_identifier())
    if out:
        with open(out, "w", encoding="utf-8") as f:
            f.write(document)
        print(f"Backup written to {out}")
    else:
        print(document)


def show_calendar(container: str, month: str | None) -> None:
    """Render the calendar widget entry the way the widget process does."""
    provider = CalendarWidgetProvider(container)
    if month:
        reference = datetime.datetime.strptime(month, "%Y-%m").date()
        entry = asyncio.run(provider.entry(reference))
    else:
        entry = provider.render()
    days = ", ".join(str(d) for d in entry["workout_days"]) or "none"
    print(f"{entry['month']}: {days}")


def show_quote(ctx: AppContext) -> None:
    quote = ctx.quotes.daily_quote()
    print(f'"{quote["text"]}" - {quote["author"]}')


def demo_data(ctx: AppContext) -> None:
    """Populate the store with demo workouts if empty."""
    if ctx.workouts.list_workouts():
        print("Database already contains workouts")
        return
    now = datetime.datetime.now().replace(microsecond=0)
    push = ctx.workouts.create_workout(
        "Push Day", now - datetime.timedelta(days=2), 60, "Demo session"
    )
    ctx.workouts.create_exercise(push["id"], "Bench Press", STRENGTH, 5, 5, 100.0)
    ctx.workouts.create_exercise(push["id"], "Push-up", BODYWEIGHT, 3, 20)
    run = ctx.workouts.create_workout("Morning Run", now, 30)
    ctx.workouts.create_exercise(
        run["id"], "Running", CARDIO, duration=30, distance=5.0, calories=320
    )
    unit = ctx.weight_unit()
    for workout in ctx.workouts.list_workouts():
        print(workout["name"])
        for ex in workout["exercises"]:
            print(f"  {ex['name']}: {primary_metrics(ex, unit)}")
    print("Demo data inserted")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="ProgressBuddy utility commands")
    parser.add_argument(
        "--container", default=None, help="shared container directory"
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    exp = sub.add_parser("export")
    exp.add_argument("--out", default="-")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", required=True)
    rst.add_argument("--yes", action="store_true")

    upl = sub.add_parser("upload")
    upl.add_argument("--id", dest="identifier", default=None)

    dwn = sub.add_parser("download")
    dwn.add_argument("--id", dest="identifier", default=None)
    dwn.add_argument("--out", default=None)
    dwn.add_argument("--restore", action="store_true")

    cal = sub.add_parser("calendar")
    cal.add_argument("--month", default=None, help="YYYY-MM")

    sub.add_parser("quote")
    sub.add_parser("demo")

    conv = sub.add_parser("convert")
    conv.add_argument("--weight", type=float, required=True)
    conv.add_argument("--unit", choices=list(WeightConverter.UNITS), required=True)

    args = parser.parse_args(argv)

    if args.cmd == "convert":
        if args.unit == "kg":
            print(f"{args.weight} kg = {WeightConverter.format(args.weight, 'lbs')}")
        else:
            kg = WeightConverter.to_kg(args.weight, "lbs")
            print(f"{args.weight} lbs = {WeightConverter.format(kg, 'kg')}")
        return

    try:
        ctx = AppContext(container=args.container)
        if args.cmd == "export":
            export_backup(ctx, args.out)
        elif args.cmd == "restore":
            restore_backup(ctx, args.src, args.yes)
        elif args.cmd == "upload":
            upload_backup(ctx, args.identifier)
        elif args.cmd == "download":
            download_backup(ctx, args.identifier, args.out, args.restore)
        elif args.cmd == "calendar":
            show_calendar(ctx.container, args.month)
        elif args.cmd == "quote":
            show_quote(ctx)
        elif args.cmd == "demo":
            demo_data(ctx)
    except ProgressBuddyError as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
