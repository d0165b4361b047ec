import argparse

from loguru import logger

from remi.db import init_db, session_scope
from remi.services.catalogue_service import CatalogueService


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Assign catalogue numbers to a show's confirmed entries")
    parser.add_argument("show_id", help="Show to number")
    parser.add_argument(
        "--as-user",
        default=None,
        metavar="USER_ID",
        help="Check that this user is one of the show's secretaries before numbering",
    )
    parser.add_argument(
        "--print",
        dest="print_numbers",
        action="store_true",
        help="Print entry id and catalogue number pairs after assignment",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    init_db()

    with session_scope() as session:
        assignment = CatalogueService(session).assign_numbers(args.show_id, args.as_user)
        if args.print_numbers:
            for entry_id, number in assignment.numbers:
                print(f"{number}\t{entry_id}")

    logger.info("Numbered {} entries for show {}", assignment.assigned, args.show_id)


if __name__ == "__main__":
    main()
