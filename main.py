import argparse
import json
import logging
import sys

from examplanner.engine import run_schedule, validate, version_info
from examplanner.errors import SchedulerError
from examplanner.params import ColumnMapping
from examplanner.io_utils import load_schedule_csv, load_table, save_result_json, save_schedule_csv
from examplanner.scheduling.evaluation import summary
from examplanner.settings import get_settings


def _csv_list(value: str):
    return [v.strip() for v in value.split(',') if v.strip()] if value else []


def _column_mapping(args) -> dict:
    return {
        'student_id_column': args.student_col,
        'course_id_column': args.course_col,
        'hall_id_column': args.hall_col,
        'capacity_column': args.capacity_col,
        'group_column': args.group_col,
    }


def cmd_run(args) -> int:
    registrations = load_table(args.registrations)
    halls = load_table(args.halls)
    params = {
        'exam_start_date': args.start,
        'exam_end_date': args.end,
        'slots_per_day': args.slots_per_day,
        'slot_times': _csv_list(args.slot_times),
        'slot_duration': args.duration,
        'holidays': _csv_list(args.holidays),
        'exclude_weekends': args.exclude_weekends,
        'timezone': args.timezone,
        'tries': args.tries,
        'seed': args.seed,
        'min_gap': args.min_gap,
        'gap_scope': args.gap_scope,
        'workers': args.workers,
        'column_mapping': _column_mapping(args),
    }
    if args.allowed_slots:
        params['allowed_slots'] = load_table(args.allowed_slots)

    result = run_schedule(registrations, halls, params)
    if not result.success:
        print(f"Scheduling failed: {result.error}", file=sys.stderr)
        if args.out_report:
            save_result_json(args.out_report, result)
        return 2

    print(summary(result))
    for line in result.report.student_clashes[:20]:
        print(f"  clash: {line}")
    for line in result.report.capacity_warnings[:20]:
        print(f"  capacity: {line}")

    save_schedule_csv(args.out_schedule, result.schedule)
    if args.out_report:
        save_result_json(args.out_report, result)
        print(f"Saved: {args.out_schedule}, {args.out_report}")
    else:
        print(f"Saved: {args.out_schedule}")
    return 0 if result.report.valid else 1


def cmd_verify(args) -> int:
    registrations = load_table(args.registrations)
    schedule = load_schedule_csv(args.schedule)
    halls = load_table(args.halls) if args.halls else None
    mapping = ColumnMapping.model_validate(_column_mapping(args))
    report = validate(registrations, schedule, halls, min_gap=args.min_gap,
                      gap_scope=args.gap_scope, column_mapping=mapping)
    print(json.dumps(report.to_dict(), indent=2))
    return 0 if report.valid else 1


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    p = argparse.ArgumentParser(description="Exam Planner – course to slot and hall scheduling")
    p.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    p.add_argument('--version', action='store_true', help='Print version information and exit')
    sub = p.add_subparsers(dest='command')

    def add_common(sp):
        sp.add_argument('--registrations', required=True, help='CSV of student/course rows')
        sp.add_argument('--student-col', default='student_id')
        sp.add_argument('--course-col', default='course_id')
        sp.add_argument('--hall-col', default='hall')
        sp.add_argument('--capacity-col', default='capacity')
        sp.add_argument('--group-col', default='group')
        sp.add_argument('--min-gap', type=int, default=0, help='Minimum minutes between a student\'s exams')
        sp.add_argument('--gap-scope', choices=['absolute', 'day'], default='absolute')

    run = sub.add_parser('run', help='Generate a timetable')
    add_common(run)
    run.add_argument('--halls', required=True, help='CSV with hall,capacity[,group]')
    run.add_argument('--allowed-slots', help='Optional CSV course_id,slot_id')
    run.add_argument('--start', required=True, help='First exam day, YYYY-MM-DD')
    run.add_argument('--end', required=True, help='Last exam day, YYYY-MM-DD')
    run.add_argument('--slots-per-day', type=int, default=2)
    run.add_argument('--slot-times', default='', help='Comma-separated HH:MM start times')
    run.add_argument('--duration', type=int, default=180, help='Slot duration in minutes')
    run.add_argument('--holidays', default='', help='Comma-separated YYYY-MM-DD dates')
    run.add_argument('--exclude-weekends', action='store_true')
    run.add_argument('--timezone', default=settings.default_timezone)
    run.add_argument('--tries', type=int, default=settings.default_tries)
    run.add_argument('--seed', type=int, default=0, help='0 picks a fresh seed')
    run.add_argument('--workers', type=int, default=settings.workers)
    run.add_argument('--out_schedule', '--out-schedule', dest='out_schedule', default='schedule.csv')
    run.add_argument('--out_report', '--out-report', dest='out_report', default=None)
    run.set_defaults(func=cmd_run)

    verify = sub.add_parser('verify', help='Validate an existing schedule CSV')
    add_common(verify)
    verify.add_argument('--schedule', required=True)
    verify.add_argument('--halls', help='Optional halls CSV for capacity checks')
    verify.set_defaults(func=cmd_verify)
    return p


def main(argv=None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    level = logging.DEBUG if args.verbose else get_settings().log_level.upper()
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    if args.version:
        print(json.dumps(version_info()))
        return 0
    if not getattr(args, 'func', None):
        p.print_help()
        return 2
    try:
        return args.func(args)
    except SchedulerError as exc:
        raise SystemExit(f"error: {exc.message}")


if __name__ == '__main__':
    sys.exit(main())
