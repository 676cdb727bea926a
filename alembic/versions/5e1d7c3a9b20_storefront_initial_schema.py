from alembic import op
import sqlalchemy as sa


revision = "5e1d7c3a9b20"
down_revision = None
branch_labels = None
depends_on = None


def _table_exists(bind, table_name: str) -> bool:
    insp = sa.inspect(bind)
    return table_name in insp.get_table_names()


def _timestamps():
    return [
        sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
        sa.Column("updated_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
    ]


def upgrade() -> None:
    bind = op.get_bind()

    if not _table_exists(bind, "customers"):
        op.create_table(
            "customers",
            sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False, unique=True),
            sa.Column("display_name", sa.String(length=100), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="ACTIVE"),
            sa.Column("balance_cents", sa.Integer(), nullable=False, server_default="0"),
            *_timestamps(),
        )

    if not _table_exists(bind, "publishers"):
        op.create_table(
            "publishers",
            sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
            sa.Column("name", sa.String(length=150), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="ACTIVE"),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
        )

    if not _table_exists(bind, "games"):
        op.create_table(
            "games",
            sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
            sa.Column("publisher_id", sa.Uuid(as_uuid=True), sa.ForeignKey("publishers.id"), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("version", sa.String(length=30), nullable=False, server_default="1.0"),
            sa.Column("release_status", sa.String(length=20), nullable=False, server_default="UPCOMING"),
            sa.Column("original_price_cents", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("discount_price_cents", sa.Integer(), nullable=True),
            *_timestamps(),
        )
        op.create_index("ix_games_publisher_id", "games", ["publisher_id"])

    if not _table_exists(bind, "game_keys"):
        op.create_table(
            "game_keys",
            sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
            sa.Column("game_id", sa.Uuid(as_uuid=True), sa.ForeignKey("games.id"), nullable=False),
            sa.Column("game_version", sa.String(length=30), nullable=False),
            sa.Column("key_code", sa.String(length=19), nullable=False),
            sa.Column("business_status", sa.String(length=20), nullable=False, server_default="AVAILABLE"),
            sa.Column("activation_status", sa.String(length=20), nullable=False, server_default="NOT_ACTIVATED"),
            sa.Column("owner_customer_id", sa.Uuid(as_uuid=True), sa.ForeignKey("customers.id"), nullable=True),
            sa.Column("ownership_date", sa.TIMESTAMP(), nullable=True),
            *_timestamps(),
            sa.UniqueConstraint("game_id", "key_code", name="uq_game_keys_game_id_key_code"),
            sa.UniqueConstraint("game_id", "owner_customer_id", name="uq_game_keys_game_id_owner"),
        )
        op.create_index("ix_game_keys_game_id_business_status", "game_keys", ["game_id", "business_status"])
        op.create_index("ix_game_keys_owner_customer_id", "game_keys", ["owner_customer_id"])

    if not _table_exists(bind, "orders"):
        op.create_table(
            "orders",
            sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
            sa.Column("customer_id", sa.Uuid(as_uuid=True), sa.ForeignKey("customers.id"), nullable=False),
            sa.Column("order_date", sa.TIMESTAMP(), nullable=False),
            sa.Column("total_cents", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("payment_method", sa.String(length=20), nullable=False),
            sa.Column("transaction_id", sa.String(length=64), nullable=False, unique=True),
            sa.Column("payment_status", sa.String(length=20), nullable=False, server_default="PENDING"),
            sa.Column("failure_code", sa.String(length=50), nullable=True),
            sa.Column("items", sa.JSON(), nullable=True),
            *_timestamps(),
        )
        op.create_index("ix_orders_customer_id", "orders", ["customer_id"])

    if not _table_exists(bind, "order_details"):
        op.create_table(
            "order_details",
            sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
            sa.Column("order_id", sa.Uuid(as_uuid=True), sa.ForeignKey("orders.id"), nullable=False),
            sa.Column("game_id", sa.Uuid(as_uuid=True), sa.ForeignKey("games.id"), nullable=False),
            sa.Column("game_key_id", sa.Uuid(as_uuid=True), sa.ForeignKey("game_keys.id"), nullable=False, unique=True),
            sa.Column("value_cents", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=True),
        )
        op.create_index("ix_order_details_order_id", "order_details", ["order_id"])
        op.create_index("ix_order_details_game_id", "order_details", ["game_id"])

    if not _table_exists(bind, "refund_requests"):
        op.create_table(
            "refund_requests",
            sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
            sa.Column("order_id", sa.Uuid(as_uuid=True), sa.ForeignKey("orders.id"), nullable=False),
            sa.Column("customer_id", sa.Uuid(as_uuid=True), sa.ForeignKey("customers.id"), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING"),
            sa.Column("reason", sa.String(length=500), nullable=True),
            sa.Column("requested_at", sa.TIMESTAMP(), nullable=False),
            sa.Column("resolved_at", sa.TIMESTAMP(), nullable=True),
            sa.Column("resolution_note", sa.String(length=500), nullable=True),
            sa.Column("processed_by_admin_id", sa.Uuid(as_uuid=True), nullable=True),
        )
        op.create_index("ix_refund_requests_order_id", "refund_requests", ["order_id"])
        op.create_index("ix_refund_requests_customer_id", "refund_requests", ["customer_id"])


def downgrade() -> None:
    bind = op.get_bind()

    for table in ("refund_requests", "order_details", "orders", "game_keys", "games", "publishers", "customers"):
        if _table_exists(bind, table):
            op.drop_table(table)
