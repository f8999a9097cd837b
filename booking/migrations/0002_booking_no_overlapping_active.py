"""
Exclusion constraint: no two active bookings of one room may overlap.

PostgreSQL only (btree_gist + tstzrange). Other databases rely on the
room-row lock and overlap re-check in DjangoBookingStore.create_booking.
"""
from django.db import migrations

CONSTRAINT = "booking_no_overlapping_active"
ACTIVE_STATUSES = ("pending", "to_be_confirmed", "confirmed")


def add_constraint(apps, schema_editor):
    if schema_editor.connection.vendor != "postgresql":
        return
    table = apps.get_model("booking", "Booking")._meta.db_table
    statuses_sql = "(" + ", ".join(f"'{s}'" for s in ACTIVE_STATUSES) + ")"
    schema_editor.execute("CREATE EXTENSION IF NOT EXISTS btree_gist;")

    # Refuse to install over existing overlaps; they must be resolved by hand first
    with schema_editor.connection.cursor() as cursor:
        cursor.execute(
            f"""
            SELECT b1.id, b2.id
            FROM {table} b1
            JOIN {table} b2 ON b1.room_id = b2.room_id AND b1.id < b2.id
            WHERE b1.status IN {statuses_sql} AND b2.status IN {statuses_sql}
              AND tstzrange(b1.start_time, b1.end_time, '[)') && tstzrange(b2.start_time, b2.end_time, '[)')
            LIMIT 1;
            """
        )
        conflict = cursor.fetchone()
    if conflict:
        raise RuntimeError(
            f"Bookings {conflict[0]} and {conflict[1]} overlap; resolve overlapping active bookings "
            "before running this migration."
        )

    schema_editor.execute(
        f"ALTER TABLE {table} ADD CONSTRAINT {CONSTRAINT} "
        "EXCLUDE USING gist (room_id WITH =, tstzrange(start_time, end_time, '[)') WITH &&) "
        f"WHERE (status IN {statuses_sql});"
    )


def drop_constraint(apps, schema_editor):
    if schema_editor.connection.vendor != "postgresql":
        return
    table = apps.get_model("booking", "Booking")._meta.db_table
    schema_editor.execute(f"ALTER TABLE {table} DROP CONSTRAINT IF EXISTS {CONSTRAINT};")


class Migration(migrations.Migration):

    dependencies = [
        ("booking", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(add_constraint, drop_constraint),
    ]
