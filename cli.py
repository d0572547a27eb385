import argparse
import csv
import logging
import shutil
import sys
from typing import Optional

from algorithms import OneRepMaxCalculator
from auth import AuthSession
from config import load_settings
from db import RecordRepository
from filter_settings import FilterSettingsRepository
from models import RecordList
from record_service import PersonalRecordService
from remote_store import SQLiteDocumentStore
from validation import RecordValidationError, build_record


def build_service(
    db_path: str,
    remote_db_path: Optional[str] = None,
    user_id: Optional[str] = None,
) -> PersonalRecordService:
    """Create a service; with ``user_id`` the remote store syncs on start."""
    repo = RecordRepository(db_path)
    session = AuthSession(user_id)
    remote = SQLiteDocumentStore(remote_db_path, session) if remote_db_path else None
    return PersonalRecordService(repo, remote, session)


def export_records(db_path: str, fmt: str, out_path: str) -> int:
    records = RecordRepository(db_path).load_records()
    if fmt == "json":
        with open(out_path, "wb") as f:
            f.write(RecordList.dump_json(records, indent=2))
        return len(records)
    with open(out_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["id", "lift_name", "record_kind", "value", "date", "notes", "is_custom"])
        for r in records:
            writer.writerow(
                [
                    str(r.id),
                    r.lift_name,
                    r.record_kind.value,
                    r.value,
                    r.date.isoformat(),
                    r.notes or "",
                    int(r.is_custom),
                ]
            )
    return len(records)


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def print_records(service: PersonalRecordService, db_path: str, weight_unit: str, filtered: bool) -> None:
    records = service.get_all_records()
    if filtered:
        settings = FilterSettingsRepository(db_path).load()
        records = settings.filtered_records(records, service.custom_lifts)
    for r in records:
        flag = " (custom)" if r.is_custom else ""
        print(
            f"{r.id}  {r.formatted_date:<13} {r.lift_name}{flag}: "
            f"{r.formatted_value(weight_unit)} [{r.record_kind.value}]"
        )


def print_estimate(weight: float, reps: int, formula: str) -> None:
    one_rm = OneRepMaxCalculator.estimate(weight, reps, formula)
    print(f"Estimated 1RM ({formula}): {one_rm:.1f}")
    for target, w in OneRepMaxCalculator.rep_max_table(one_rm).items():
        print(f"  {target}RM: {w:.1f}")


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Personal record tracker")
    parser.add_argument("--db", default=None)
    parser.add_argument("--yaml", default="settings.yaml")
    parser.add_argument("--remote-db", default=None)
    parser.add_argument("--user", default=None)
    parser.add_argument("--log-level", default=None)
    sub = parser.add_subparsers(dest="cmd", required=True)

    add = sub.add_parser("add")
    add.add_argument("lift")
    add.add_argument("value", help="number, or min:sec for time records")
    add.add_argument("--kind", default="Weight")
    add.add_argument("--date", default=None)
    add.add_argument("--notes", default=None)
    add.add_argument("--custom", action="store_true")

    lst = sub.add_parser("list")
    lst.add_argument("--filtered", action="store_true")

    dele = sub.add_parser("delete")
    dele.add_argument("record_id")

    sub.add_parser("lifts")

    add_lift = sub.add_parser("add-lift")
    add_lift.add_argument("name")

    rm_lift = sub.add_parser("remove-lift")
    rm_lift.add_argument("name")

    sub.add_parser("best")
    sub.add_parser("stats")

    est = sub.add_parser("estimate")
    est.add_argument("--weight", type=float, required=True)
    est.add_argument("--reps", type=int, required=True)
    est.add_argument("--formula", choices=["epley", "brzycki"], default="epley")

    sub.add_parser("sync")

    exp = sub.add_parser("export")
    exp.add_argument("--fmt", choices=["csv", "json"], default="csv")
    exp.add_argument("--out", default="records.csv")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")

    srv = sub.add_parser("serve")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.yaml)
    except ValueError as e:
        print(f"Invalid settings: {e}", file=sys.stderr)
        return 2
    logging.basicConfig(
        level=getattr(logging, (args.log_level or settings.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    db_path = args.db or settings.db_path
    user_id = args.user or settings.user_id
    remote_db = args.remote_db or (settings.remote_db_path if user_id else None)

    if args.cmd == "estimate":
        print_estimate(args.weight, args.reps, args.formula)
        return 0
    if args.cmd == "export":
        count = export_records(db_path, args.fmt, args.out)
        print(f"Exported {count} records to {args.out}")
        return 0
    if args.cmd == "backup":
        backup_db(db_path, args.out)
        return 0
    if args.cmd == "restore":
        restore_db(args.src, db_path)
        return 0
    if args.cmd == "serve":
        import uvicorn
        from rest_api import RecordsAPI

        api = RecordsAPI(db_path=db_path, yaml_path=args.yaml, remote_db_path=remote_db)
        uvicorn.run(api.app, host=args.host, port=args.port)
        return 0
    if args.cmd == "sync":
        if not (user_id and remote_db):
            print("Sync needs --user and a remote database", file=sys.stderr)
            return 2
        service = build_service(db_path, remote_db)
        service.session.sign_in(user_id)
        if service.last_sync_date is None:
            print("Sync failed, see log for details", file=sys.stderr)
            return 1
        print(f"Synced {service.total_records()} records, {len(service.custom_lifts)} custom lifts")
        return 0

    service = build_service(db_path, remote_db, user_id)

    if args.cmd == "add":
        lift = args.lift.strip()
        if args.custom and lift:
            service.add_custom_lift(lift)
        is_custom = service.is_custom_lift(lift)
        try:
            record = build_record(
                lift,
                args.kind,
                args.value,
                date=args.date,
                notes=args.notes,
                is_custom=is_custom,
            )
        except RecordValidationError as e:
            print(str(e), file=sys.stderr)
            return 2
        service.add_record(record)
        print(record.id)
    elif args.cmd == "list":
        print_records(service, db_path, settings.weight_unit, args.filtered)
    elif args.cmd == "delete":
        matches = [r for r in service.get_all_records() if str(r.id).startswith(args.record_id)]
        if len(matches) != 1:
            print("No unique record matches that id", file=sys.stderr)
            return 1
        service.delete_record(matches[0])
    elif args.cmd == "lifts":
        for lift in service.get_all_lifts():
            marker = "*" if service.is_custom_lift(lift) else " "
            print(f"{marker} {lift}")
    elif args.cmd == "add-lift":
        if not service.add_custom_lift(args.name.strip()):
            print("Lift already exists", file=sys.stderr)
            return 1
    elif args.cmd == "remove-lift":
        service.remove_custom_lift(args.name)
    elif args.cmd == "best":
        best = service.best_overall_record()
        if best is None:
            print("No records yet")
        else:
            print(f"Best {best.record_kind.value}: {best.lift_name} {best.formatted_value(settings.weight_unit)}")
    elif args.cmd == "stats":
        summary = service.summary()
        print(f"Records: {summary['total_records']}")
        print(f"Total weight: {summary['total_weight']}")
        print(f"Average weight: {summary['average_weight']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
