"""auth_0001_init

Create schema and tables:
- auth.users
- auth.accounts
"""

from alembic import op

revision = "auth_0001"
down_revision = None
branch_labels = ("auth",)
depends_on = None


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS auth")
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS auth.users (
          id VARCHAR(64) PRIMARY KEY,
          email VARCHAR(255) NOT NULL UNIQUE,
          name VARCHAR(255) NULL,
          sex VARCHAR(16) NOT NULL DEFAULT 'MALE',
          role VARCHAR(32) NOT NULL DEFAULT 'VISITOR',
          user_type VARCHAR(32) NULL,
          current_job_status VARCHAR(32) NULL,
          is_email_verified BOOLEAN NOT NULL DEFAULT FALSE,
          migrated_from_supabase BOOLEAN NOT NULL DEFAULT FALSE,
          legacy_user_id VARCHAR(64) NULL,
          migration_date TIMESTAMPTZ NULL,
          created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
          updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS ix_auth_users_email ON auth.users (email)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_auth_users_legacy_user_id ON auth.users (legacy_user_id)")
    op.execute(
        """
        CREATE TABLE IF NOT EXISTS auth.accounts (
          id VARCHAR(64) PRIMARY KEY,
          user_id VARCHAR(64) NOT NULL REFERENCES auth.users (id) ON DELETE CASCADE,
          email VARCHAR(255) NOT NULL,
          password VARCHAR(255) NULL,
          status VARCHAR(16) NOT NULL DEFAULT 'ACTIVE',
          created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        """
    )
    op.execute("CREATE INDEX IF NOT EXISTS ix_auth_accounts_user_id ON auth.accounts (user_id)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_auth_accounts_email ON auth.accounts (email)")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS auth.accounts")
    op.execute("DROP TABLE IF EXISTS auth.users")
