import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


def timestamped() -> list[tuple[str, models.Field]]:  # type: ignore[type-arg]
    return [
        ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
        ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
        ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
    ]


ORDER_STATUS_CHOICES = [
    ("pending", "Pending"),
    ("confirmed", "Confirmed"),
    ("rejected", "Rejected"),
    ("cancelled", "Cancelled"),
    ("expired", "Expired"),
]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Event",
            fields=[
                *timestamped(),
                ("name", models.CharField(db_index=True, max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                ("location", models.CharField(max_length=255)),
                (
                    "start",
                    models.DateTimeField(db_index=True, help_text="Scheduled date and time of the event"),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("approved", "Approved"), ("rejected", "Rejected")],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("tickets_number", models.PositiveIntegerField(help_text="Total number of tickets")),
                (
                    "available_tickets",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Remaining tickets. Maintained by reservations and releases, never edited directly.",
                    ),
                ),
                (
                    "price_bus",
                    models.DecimalField(
                        decimal_places=2,
                        default=0,
                        help_text="Price with bus",
                        max_digits=8,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "price_no_bus",
                    models.DecimalField(
                        decimal_places=2,
                        default=0,
                        help_text="Price without bus",
                        max_digits=8,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                ("image_url", models.CharField(blank=True, default="", max_length=500)),
                ("payment_iban", models.CharField(blank=True, default="", max_length=34)),
                ("payment_mbway", models.CharField(blank=True, default="", max_length=20)),
                ("payment_name", models.CharField(blank=True, default="", max_length=255)),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="owned_events",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["start"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("available_tickets__lte", models.F("tickets_number"))),
                        name="event_available_tickets_within_capacity",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Table",
            fields=[
                *timestamped(),
                ("name", models.CharField(max_length=100)),
                (
                    "capacity",
                    models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)]),
                ),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="tables", to="events.event"
                    ),
                ),
            ],
            options={
                "ordering": ["name"],
                "constraints": [
                    models.UniqueConstraint(fields=("event", "name"), name="unique_table_name_per_event")
                ],
            },
        ),
        migrations.CreateModel(
            name="Bus",
            fields=[
                *timestamped(),
                (
                    "direction",
                    models.CharField(
                        choices=[("outbound", "Outbound"), ("return", "Return")], db_index=True, max_length=10
                    ),
                ),
                ("location", models.CharField(help_text="Pick-up point", max_length=255)),
                ("departs_at", models.DateTimeField()),
                (
                    "capacity",
                    models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)]),
                ),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="buses", to="events.event"
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "buses",
                "ordering": ["direction", "departs_at"],
            },
        ),
        migrations.CreateModel(
            name="Order",
            fields=[
                *timestamped(),
                (
                    "total_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0"),
                        max_digits=10,
                        validators=[django.core.validators.MinValueValidator(0)],
                    ),
                ),
                (
                    "status",
                    models.CharField(choices=ORDER_STATUS_CHOICES, db_index=True, default="pending", max_length=20),
                ),
                ("payment_proof_url", models.CharField(blank=True, default="", max_length=500)),
                ("payment_submitted_at", models.DateTimeField(blank=True, null=True)),
                ("tickets_sent", models.BooleanField(default=False)),
                ("tickets_sent_at", models.DateTimeField(blank=True, null=True)),
                (
                    "buyer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="orders", to="events.event"
                    ),
                ),
                (
                    "tickets_sent_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="released_orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["event", "status"], name="idx_order_event_status")],
            },
        ),
        migrations.CreateModel(
            name="Ticket",
            fields=[
                *timestamped(),
                ("ticket_email", models.EmailField(help_text="Where the ticket is delivered", max_length=254)),
                (
                    "restrictions",
                    models.CharField(blank=True, default="", help_text="Dietary restrictions", max_length=500),
                ),
                (
                    "status",
                    models.CharField(
                        choices=ORDER_STATUS_CHOICES,
                        db_index=True,
                        default="pending",
                        editable=False,
                        max_length=20,
                    ),
                ),
                (
                    "validation_code",
                    models.CharField(blank=True, editable=False, max_length=32, null=True, unique=True),
                ),
                ("available_for_download", models.BooleanField(default=False)),
                ("sent_at", models.DateTimeField(blank=True, null=True)),
                ("emailed_at", models.DateTimeField(blank=True, null=True)),
                ("checked_in_at", models.DateTimeField(blank=True, editable=False, null=True)),
                ("checked_out_at", models.DateTimeField(blank=True, editable=False, null=True)),
                (
                    "buyer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="tickets",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "bus_outbound",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="outbound_tickets",
                        to="events.bus",
                    ),
                ),
                (
                    "bus_return",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="return_tickets",
                        to="events.bus",
                    ),
                ),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="tickets", to="events.event"
                    ),
                ),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="tickets", to="events.order"
                    ),
                ),
                (
                    "table",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="tickets",
                        to="events.table",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("checked_out_at__isnull", True), ("checked_in_at__isnull", False), _connector="OR"
                        ),
                        name="ticket_checkout_requires_checkin",
                    )
                ],
                "indexes": [
                    models.Index(fields=["event", "buyer", "status"], name="idx_ticket_event_buyer_status")
                ],
            },
        ),
        migrations.CreateModel(
            name="StaffAccessCode",
            fields=[
                *timestamped(),
                ("code", models.CharField(editable=False, max_length=6, unique=True)),
                ("name", models.CharField(help_text="Who holds the code", max_length=100)),
                ("is_active", models.BooleanField(default=True)),
                ("last_used_at", models.DateTimeField(blank=True, null=True)),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="staff_codes", to="events.event"
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="StaffActionLog",
            fields=[
                *timestamped(),
                (
                    "action",
                    models.CharField(choices=[("check_in", "Check-in"), ("check_out", "Check-out")], max_length=20),
                ),
                ("staff_name", models.CharField(max_length=100)),
                ("ticket_email", models.EmailField(blank=True, default="", max_length=254)),
                (
                    "access_code",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="actions",
                        to="events.staffaccesscode",
                    ),
                ),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="staff_actions", to="events.event"
                    ),
                ),
                (
                    "ticket",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="staff_actions",
                        to="events.ticket",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
    ]
