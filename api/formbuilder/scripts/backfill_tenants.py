import sys

from formbuilder.config import DATABASE_URL
from formbuilder.db import Database
from formbuilder.backfill import backfill_tenants
from formbuilder.errors import PreconditionFailedError, StorageError
from formbuilder.logging_config import setup_logging
from formbuilder.store import Store


def main(database=None) -> int:
    setup_logging()
    database = database or Database(DATABASE_URL)
    print("Starting tenant data cleanup...")
    database.init()
    try:
        with database.session() as session:
            report = backfill_tenants(Store(session, database=database))
    except PreconditionFailedError as exc:
        print(exc.message)
        return 1
    except StorageError as exc:
        print(f"Cleanup failed: {exc.message}")
        return 1
    finally:
        database.shutdown()

    print(f"Found admin user: {report.admin_email} ({report.admin_id})")
    print("Cleanup completed successfully!")
    print("Summary:")
    print(f"   - Fixed {report.forms_fixed} forms")
    print(f"   - Fixed {report.submissions_fixed} submissions")
    print("   - All records now have proper tenant assignments")
    if report.changed:
        print("")
        print("Next steps:")
        print("   1. Re-run this command until it reports 0 forms and 0 submissions")
        print("   2. Then make forms.tenant_id and form_submissions.tenant_id NOT NULL")
    return 0


if __name__ == "__main__":
    sys.exit(main())
