from __future__ import annotations

import os

TENANT_HEADER = os.getenv("TENANT_HEADER", "X-Tenant-Id")
