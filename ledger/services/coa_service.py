# ledger/services/coa_service.py

import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, TypedDict, Union

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Q, QuerySet

from ledger_core.constants import DEFAULT_CHART_OF_ACCOUNTS
from ledger_core.enums import (
    AccountType, CATEGORY_CODE_PREFIX, CATEGORY_TO_NATURE, FALLBACK_CODE_PREFIX,
)
from ..exceptions import AccountCodeConflictError, AccountNotFoundError, AccountValidationError
from ..models.coa import Account, parent_compatibility_error

logger = logging.getLogger(__name__)

PK_TYPE = Union[str, Any]
CODE_SEGMENT_WIDTH = 4

# Fields a caller may set through create_account/update_account.
EDITABLE_ACCOUNT_FIELDS = frozenset({
    'code', 'name', 'description', 'account_type', 'nature', 'category', 'sub_category',
    'is_cash_account', 'is_bank_account', 'is_depreciable', 'cash_flow_role', 'is_non_cash_expense',
    'opening_balance', 'opening_date', 'is_active', 'is_system', 'allow_direct_posting',
})


class AccountTreeNode(TypedDict):
    id: PK_TYPE
    code: str
    name: str
    account_type: str
    category: str
    nature: str
    sub_category: Optional[str]
    is_active: bool
    children: List['AccountTreeNode']


# =============================================================================
# Lookups
# =============================================================================

def get_account(account_id: PK_TYPE) -> Account:
    try:
        return Account.objects.get(pk=account_id)
    except (Account.DoesNotExist, DjangoValidationError):
        raise AccountNotFoundError(account_id)


def get_account_by_code(code: str) -> Account:
    try:
        return Account.objects.get(code=code)
    except Account.DoesNotExist:
        raise AccountNotFoundError(code)


def list_accounts(
        search: Optional[str] = None,
        account_type: Optional[str] = None,
        nature: Optional[str] = None,
        category: Optional[str] = None,
        parent_id: Optional[PK_TYPE] = None,
        root_only: bool = False,
        is_active: Optional[bool] = None,
) -> QuerySet:
    """
    Non-deleted accounts matching the given filters, ordered by code.
    """
    qs = Account.objects.select_related('parent')
    if search:
        qs = qs.filter(Q(code__icontains=search) | Q(name__icontains=search))
    if account_type:
        qs = qs.filter(account_type=account_type)
    if nature:
        qs = qs.filter(nature=nature)
    if category:
        qs = qs.filter(category=category)
    if parent_id:
        qs = qs.filter(parent_id=parent_id)
    if root_only:
        qs = qs.filter(parent__isnull=True)
    if is_active is not None:
        qs = qs.filter(is_active=is_active)
    return qs.order_by('code')


def get_detail_accounts() -> QuerySet:
    """Active, postable accounts."""
    return Account.objects.filter(account_type=AccountType.DETAIL, is_active=True).order_by('code')


# =============================================================================
# Code generation
# =============================================================================

def _segment_number(code: str, index: int) -> Optional[int]:
    parts = code.split('-')
    try:
        return int(parts[index])
    except (IndexError, ValueError):
        return None


def generate_account_code(parent: Optional[Account], category: Optional[str]) -> str:
    """
    Root accounts: '<category prefix>-NNNN', one above the highest second segment among
    existing codes with that prefix. Children: '<parent code>-NNNN', one above the highest
    last segment among codes directly under the parent code. Soft-deleted accounts still hold their
    codes, so they are counted too.
    """
    if parent is None:
        prefix = CATEGORY_CODE_PREFIX.get(category, FALLBACK_CODE_PREFIX)
        existing_codes = Account.all_objects.filter(code__startswith=f"{prefix}-").values_list('code', flat=True)
        numbers = [n for n in (_segment_number(c, 1) for c in existing_codes) if n is not None]
        next_number = max(numbers, default=0) + 1
        return f"{prefix}-{next_number:0{CODE_SEGMENT_WIDTH}d}"

    # Match on the code prefix: a moved account keeps its code under its old parent.
    depth = parent.code.count('-') + 1
    sibling_codes = Account.all_objects.filter(code__startswith=f"{parent.code}-").values_list('code', flat=True)
    numbers = [n for n in (_segment_number(c, depth) for c in sibling_codes if c.count('-') == depth)
               if n is not None]
    next_number = max(numbers, default=0) + 1
    return f"{parent.code}-{next_number:0{CODE_SEGMENT_WIDTH}d}"


# =============================================================================
# Create / update / reparent / delete
# =============================================================================

def _validation_message(exc: DjangoValidationError) -> str:
    if hasattr(exc, 'message_dict'):
        return "; ".join(f"{field}: {' '.join(msgs)}" for field, msgs in exc.message_dict.items())
    return " ".join(exc.messages)


def _save_account(account: Account, user=None) -> Account:
    if user is not None:
        if account._state.adding:
            account.created_by = user
        account.updated_by = user
    try:
        account.save()
    except DjangoValidationError as e:
        raise AccountValidationError(_validation_message(e))
    except IntegrityError:
        raise AccountCodeConflictError(account.code)
    return account


@transaction.atomic
def create_account(data: Dict[str, Any], parent_id: Optional[PK_TYPE] = None, user=None) -> Account:
    """
    Creates an account under `parent_id` (or as a root).

    Raises:
        AccountNotFoundError: parent_id does not resolve.
        AccountValidationError: parent/child type rules are violated.
        AccountCodeConflictError: the explicit code already exists.
    """
    unknown = set(data) - EDITABLE_ACCOUNT_FIELDS
    if unknown:
        raise AccountValidationError(f"Unknown account fields: {', '.join(sorted(unknown))}")
    if not data.get('name'):
        raise AccountValidationError("Account name is required.", field='name')

    account_type = data.get('account_type') or AccountType.DETAIL
    parent = get_account(parent_id) if parent_id else None

    reason = parent_compatibility_error(parent.account_type if parent else None, account_type)
    if reason:
        raise AccountValidationError(reason, field='parent')

    category = data.get('category') or (parent.category if parent else None)
    if not category:
        raise AccountValidationError("Category is required for root accounts.", field='category')

    fields = dict(data)
    fields['account_type'] = account_type
    fields['category'] = category
    fields.setdefault('nature', None)
    if not fields['nature']:
        fields['nature'] = parent.nature if parent and parent.category == category else CATEGORY_TO_NATURE.get(category)
    if parent and not fields.get('sub_category') and parent.category == category:
        fields['sub_category'] = parent.sub_category

    code = fields.pop('code', None)
    if code:
        if Account.all_objects.filter(code=code).exists():
            raise AccountCodeConflictError(code)
    else:
        code = generate_account_code(parent, category)

    account = Account(code=code, parent=parent, **fields)
    _save_account(account, user)
    logger.info(f"Created account {account.code} '{account.name}' ({account.account_type}) "
                f"under {parent.code if parent else 'ROOT'}.")
    return account


def would_create_cycle(account_id: PK_TYPE, new_parent_id: PK_TYPE) -> bool:
    """
    Walks the parent chain from new_parent_id to the root and reports whether account_id is met.
    The chain is read from a single fetch of (id, parent_id) pairs.
    """
    parent_of = dict(Account.objects.values_list('pk', 'parent_id'))
    current = new_parent_id
    visited = set()
    while current is not None:
        if str(current) == str(account_id):
            return True
        if current in visited:
            logger.error(f"Existing parent cycle detected around account {current}.")
            return True
        visited.add(current)
        current = parent_of.get(current)
    return False


@transaction.atomic
def reparent(account_id: PK_TYPE, new_parent_id: Optional[PK_TYPE], user=None) -> Account:
    account = get_account(account_id)
    if new_parent_id is not None and str(new_parent_id) == str(account.pk):
        raise AccountValidationError("Account cannot be its own parent.", field='parent')

    new_parent = get_account(new_parent_id) if new_parent_id is not None else None
    if new_parent is not None and would_create_cycle(account.pk, new_parent.pk):
        raise AccountValidationError("Cannot set parent: would create circular reference.", field='parent')

    reason = parent_compatibility_error(new_parent.account_type if new_parent else None, account.account_type)
    if reason:
        raise AccountValidationError(reason, field='parent')

    old_parent_code = account.parent.code if account.parent_id else 'ROOT'
    account.parent = new_parent
    _save_account(account, user)
    logger.info(f"Moved account {account.code} from {old_parent_code} to "
                f"{new_parent.code if new_parent else 'ROOT'}.")
    return account


@transaction.atomic
def update_account(account_id: PK_TYPE, changes: Dict[str, Any], user=None) -> Account:
    account = get_account(account_id)
    if account.is_system:
        raise AccountValidationError("Cannot modify system accounts.")

    changes = dict(changes)
    has_parent_change = 'parent_id' in changes
    new_parent_id = changes.pop('parent_id', None)

    unknown = set(changes) - EDITABLE_ACCOUNT_FIELDS
    if unknown:
        raise AccountValidationError(f"Unknown account fields: {', '.join(sorted(unknown))}")

    new_code = changes.get('code')
    if new_code and new_code != account.code:
        if Account.all_objects.filter(code=new_code).exclude(pk=account.pk).exists():
            raise AccountCodeConflictError(new_code)

    if has_parent_change:
        account = reparent(account.pk, new_parent_id, user=user)

    if changes:
        for field, value in changes.items():
            setattr(account, field, value)
        _save_account(account, user)
        logger.info(f"Updated account {account.code}: {', '.join(sorted(changes))}.")
    return account


@transaction.atomic
def delete_account(account_id: PK_TYPE, user=None) -> None:
    """
    Soft-deletes an account that is neither system-flagged nor a parent of live accounts.
    """
    account = get_account(account_id)
    if account.is_system:
        raise AccountValidationError("Cannot delete system accounts.")
    if Account.objects.filter(parent_id=account.pk).exists():
        raise AccountValidationError("Cannot delete account with child accounts.")

    if user is not None:
        account.updated_by = user
        account.save(update_fields=['updated_by', 'updated_at'])
    account.delete()
    logger.info(f"Soft-deleted account {account.code} '{account.name}'.")


# =============================================================================
# Tree operations (single fetch, in-memory assembly)
# =============================================================================

def build_tree(accounts: Iterable[Account]) -> List[AccountTreeNode]:
    """
    Assembles a forest from a flat list. Roots are accounts without a parent or whose
    parent is not in the list; children are ordered by code at every level.
    """
    accounts = list(accounts)
    present = {a.pk for a in accounts}
    children_of: Dict[Any, List[Account]] = defaultdict(list)
    roots: List[Account] = []
    for account in accounts:
        if account.parent_id is None or account.parent_id not in present:
            roots.append(account)
        else:
            children_of[account.parent_id].append(account)

    def to_node(account: Account, path: frozenset) -> AccountTreeNode:
        kids = sorted(children_of.get(account.pk, []), key=lambda a: a.code)
        return {
            'id': account.pk,
            'code': account.code,
            'name': account.name,
            'account_type': account.account_type,
            'category': account.category,
            'nature': account.nature,
            'sub_category': account.sub_category,
            'is_active': account.is_active,
            'children': [to_node(kid, path | {account.pk}) for kid in kids if kid.pk not in path],
        }

    return [to_node(root, frozenset()) for root in sorted(roots, key=lambda a: a.code)]


def flatten_tree(nodes: List[AccountTreeNode]) -> List[AccountTreeNode]:
    flat: List[AccountTreeNode] = []
    stack = list(reversed(nodes))
    while stack:
        node = stack.pop()
        flat.append(node)
        stack.extend(reversed(node['children']))
    return flat


def get_account_tree() -> List[AccountTreeNode]:
    return build_tree(Account.objects.order_by('code'))


def _descendants_from(accounts: List[Account], root_pk: Any) -> List[Account]:
    children_of: Dict[Any, List[Account]] = defaultdict(list)
    for account in accounts:
        if account.parent_id is not None:
            children_of[account.parent_id].append(account)

    found: List[Account] = []
    seen = {root_pk}
    stack = [root_pk]
    while stack:
        current = stack.pop()
        for child in children_of.get(current, []):
            if child.pk in seen:
                continue
            seen.add(child.pk)
            found.append(child)
            stack.append(child.pk)
    return sorted(found, key=lambda a: a.code)


def get_descendants(account_id: PK_TYPE) -> List[Account]:
    """All non-deleted descendants of an account, ordered by code."""
    root = get_account(account_id)
    return _descendants_from(list(Account.objects.all()), root.pk)


def get_sub_tree(account_id: PK_TYPE) -> List[AccountTreeNode]:
    root = get_account(account_id)
    accounts = list(Account.objects.all())
    return build_tree([root] + _descendants_from(accounts, root.pk))


# =============================================================================
# Default chart seeding
# =============================================================================

@transaction.atomic
def seed_default_chart(user=None, chart: Optional[List[Dict[str, Any]]] = None) -> Dict[str, int]:
    """
    Installs the default cold-storage chart of accounts. Idempotent: accounts whose code
    already exists are left untouched.
    """
    stats = {'created': 0, 'skipped': 0}
    existing = set(Account.all_objects.values_list('code', flat=True))

    def _install(definition: Dict[str, Any], parent: Optional[Account]):
        definition = dict(definition)
        children = definition.pop('children', [])
        code = definition['code']
        if code in existing:
            account = Account.all_objects.get(code=code)
            stats['skipped'] += 1
        else:
            account = create_account(definition, parent_id=parent.pk if parent else None, user=user)
            existing.add(code)
            stats['created'] += 1
        for child in children:
            _install(child, account)

    for root_definition in (chart if chart is not None else DEFAULT_CHART_OF_ACCOUNTS):
        _install(root_definition, None)

    logger.info(f"Default chart seeding finished: {stats['created']} created, {stats['skipped']} skipped.")
    return stats
