"""SQL statements for the accounts, audit, invalidation and seller-application tables."""

# ─── Schema ──────────────────────────────────────────────────────────────────

SQL_CREATE_SCHEMA = """
CREATE TABLE IF NOT EXISTS accounts (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    display_name TEXT,
    password_hash TEXT,
    role TEXT NOT NULL DEFAULT 'USER',
    account_status TEXT NOT NULL DEFAULT 'ACTIVE',
    suspension_reason TEXT,
    suspension_expires_at TIMESTAMPTZ,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CONSTRAINT accounts_role_check CHECK (role IN ('USER', 'SELLER', 'ADMIN', 'SUPER_ADMIN')),
    CONSTRAINT accounts_status_check CHECK (account_status IN ('ACTIVE', 'SUSPENDED', 'BANNED'))
);

CREATE TABLE IF NOT EXISTS audit_logs (
    id BIGSERIAL PRIMARY KEY,
    actor_id TEXT NOT NULL,
    actor_role TEXT NOT NULL,
    action TEXT NOT NULL,
    target_type TEXT NOT NULL,
    target_id TEXT NOT NULL,
    metadata JSONB,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_audit_logs_actor ON audit_logs (actor_id, created_at DESC);

CREATE TABLE IF NOT EXISTS token_invalidations (
    id BIGSERIAL PRIMARY KEY,
    user_id TEXT NOT NULL,
    reason TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_token_invalidations_user ON token_invalidations (user_id, created_at DESC);

CREATE TABLE IF NOT EXISTS seller_applications (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES accounts(id),
    business_name TEXT NOT NULL,
    business_description TEXT,
    status TEXT NOT NULL DEFAULT 'PENDING',
    reviewed_by TEXT,
    reviewed_at TIMESTAMPTZ,
    rejection_reason TEXT,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_seller_applications_user ON seller_applications (user_id, status);
"""

# ─── Accounts ────────────────────────────────────────────────────────────────

_ACCOUNT_COLUMNS = """
    id, email, display_name, password_hash, role, account_status,
    suspension_reason, suspension_expires_at, created_at, updated_at
"""

SQL_GET_ACCOUNT_BY_ID = f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE id = %s"

SQL_GET_ACCOUNT_BY_EMAIL = f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE lower(email) = lower(%s)"

SQL_INSERT_ACCOUNT = f"""
INSERT INTO accounts (id, email, display_name, password_hash, role, account_status)
VALUES (%s, %s, %s, %s, %s, %s)
RETURNING {_ACCOUNT_COLUMNS}
"""

SQL_UPDATE_ACCOUNT_STATUS = """
UPDATE accounts
SET account_status = %s, suspension_reason = %s, suspension_expires_at = %s, updated_at = NOW()
WHERE id = %s
"""

SQL_UPDATE_ACCOUNT_ROLE = """
UPDATE accounts SET role = %s, updated_at = NOW() WHERE id = %s
"""

SQL_LIST_ACCOUNTS = f"SELECT {_ACCOUNT_COLUMNS} FROM accounts"

SQL_COUNT_ACCOUNTS = "SELECT COUNT(*) AS count FROM accounts"

# ─── Audit log ───────────────────────────────────────────────────────────────

SQL_INSERT_AUDIT_LOG = """
INSERT INTO audit_logs (actor_id, actor_role, action, target_type, target_id, metadata)
VALUES (%s, %s, %s, %s, %s, %s)
RETURNING id, created_at
"""

SQL_LIST_AUDIT_LOGS = """
SELECT id, actor_id, actor_role, action, target_type, target_id, metadata, created_at
FROM audit_logs
"""

SQL_COUNT_AUDIT_LOGS = "SELECT COUNT(*) AS count FROM audit_logs"

# ─── Token invalidation ──────────────────────────────────────────────────────

SQL_INSERT_TOKEN_INVALIDATION = """
INSERT INTO token_invalidations (user_id, reason) VALUES (%s, %s)
RETURNING id, created_at
"""

# ─── Seller applications ─────────────────────────────────────────────────────

_APPLICATION_COLUMNS = """
    id, user_id, business_name, business_description, status,
    reviewed_by, reviewed_at, rejection_reason, created_at
"""

SQL_GET_SELLER_APPLICATION = f"SELECT {_APPLICATION_COLUMNS} FROM seller_applications WHERE id = %s"

SQL_GET_PENDING_SELLER_APPLICATION = f"""
SELECT {_APPLICATION_COLUMNS} FROM seller_applications
WHERE user_id = %s AND status = 'PENDING'
LIMIT 1
"""

SQL_INSERT_SELLER_APPLICATION = f"""
INSERT INTO seller_applications (id, user_id, business_name, business_description)
VALUES (%s, %s, %s, %s)
RETURNING {_APPLICATION_COLUMNS}
"""

SQL_COUNT_SELLER_APPLICATIONS = "SELECT COUNT(*) AS count FROM seller_applications"

SQL_LIST_SELLER_APPLICATIONS = f"SELECT {_APPLICATION_COLUMNS} FROM seller_applications"

SQL_REVIEW_SELLER_APPLICATION = """
UPDATE seller_applications
SET status = %s, reviewed_by = %s, reviewed_at = NOW(), rejection_reason = %s
WHERE id = %s
"""
