# Overview: Read-only lookups against the account directory.

from __future__ import annotations

from ..extensions import db
from ..models import Account
from ..errors import UnavailableError, WorkerUnavailableError


def find_account(account_id: int | None) -> Account | None:
    if account_id is None:
        return None
    return db.session.get(Account, account_id)


def require_active_company(company_id: int) -> Account:
    """Company must exist, be a company_rep account, and be active."""
    company = find_account(company_id)
    if company is None or company.role != "company_rep" or not company.is_active:
        raise UnavailableError(
            "Selected company is not available",
            details={"company_id": company_id},
        )
    return company


def require_active_worker(worker_id: int) -> Account:
    """Worker must exist, be a delivery_worker account, and be active."""
    worker = find_account(worker_id)
    if worker is None or worker.role != "delivery_worker" or not worker.is_active:
        raise WorkerUnavailableError(
            "Selected delivery worker is not available",
            details={"delivery_worker_id": worker_id},
        )
    return worker


def location_of(account: Account | None) -> str | None:
    """Format "address, area, city" with N/A for missing parts."""
    if account is None:
        return None
    return f"{account.address or 'N/A'}, {account.area or 'N/A'}, {account.city or 'N/A'}"
