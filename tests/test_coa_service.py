# tests/test_coa_service.py
"""
Tests for the chart-of-accounts directory.

Tests cover:
- Code generation for roots and children
- Parent/child type rules and cycle detection
- Code conflicts, system-account protection and soft deletion
- Tree assembly from a flat list
- Idempotent default chart seeding
"""

import pytest

from ledger.exceptions import AccountCodeConflictError, AccountNotFoundError, AccountValidationError
from ledger.models import Account
from ledger.services import coa_service
from ledger_core.enums import AccountCategory, AccountNature, AccountType

from .chart_codes import CASH, OWNER_CAPITAL


# =============================================================================
# Code Generation Tests
# =============================================================================

@pytest.mark.django_db
class TestCodeGeneration:

    def test_first_root_asset_account_gets_1_0001(self):
        account = coa_service.create_account(
            {'name': 'Assets', 'category': AccountCategory.ASSET, 'account_type': AccountType.CONTROL}
        )
        assert account.code == '1-0001'
        assert account.nature == AccountNature.DEBIT

    def test_second_root_increments_second_segment(self, make_account):
        make_account('Assets', category=AccountCategory.ASSET, account_type=AccountType.CONTROL)
        second = make_account('Other Assets', category=AccountCategory.ASSET, account_type=AccountType.CONTROL)
        assert second.code == '1-0002'

    def test_child_code_extends_parent_code(self, make_account):
        root = make_account('Liabilities', category=AccountCategory.LIABILITY, account_type=AccountType.CONTROL)
        first = make_account('Trade Payables', parent=root)
        second = make_account('Accrued Wages', parent=root)
        assert first.code == '2-0001-0001'
        assert second.code == '2-0001-0002'

    def test_child_inherits_category_and_nature(self, make_account):
        root = make_account('Revenue', category=AccountCategory.REVENUE, account_type=AccountType.CONTROL)
        child = make_account('Storage Rent', parent=root)
        assert child.category == AccountCategory.REVENUE
        assert child.nature == AccountNature.CREDIT
        assert child.account_type == AccountType.DETAIL


# =============================================================================
# Structural Rule Tests
# =============================================================================

@pytest.mark.django_db
class TestStructuralRules:

    def test_child_under_detail_account_is_rejected(self, make_account):
        root = make_account('Assets', category=AccountCategory.ASSET, account_type=AccountType.CONTROL)
        detail = make_account('Petty Cash', parent=root)

        with pytest.raises(AccountValidationError):
            make_account('Coins', parent=detail)

    def test_root_must_be_control(self):
        with pytest.raises(AccountValidationError):
            coa_service.create_account({'name': 'Loose Cash', 'category': AccountCategory.ASSET})

    def test_control_under_sub_control_is_rejected(self, make_account):
        root = make_account('Assets', category=AccountCategory.ASSET, account_type=AccountType.CONTROL)
        sub = make_account('Current Assets', parent=root, account_type=AccountType.SUB_CONTROL)

        with pytest.raises(AccountValidationError):
            make_account('Nested Control', parent=sub, account_type=AccountType.CONTROL)

    def test_unknown_parent_raises_not_found(self):
        with pytest.raises(AccountNotFoundError):
            coa_service.create_account({'name': 'Orphan'}, parent_id='00000000-0000-0000-0000-000000000000')

    def test_unknown_fields_are_rejected(self):
        with pytest.raises(AccountValidationError):
            coa_service.create_account({'name': 'Assets', 'category': AccountCategory.ASSET,
                                        'account_type': AccountType.CONTROL, 'current_balance': 10})

    def test_reparent_onto_descendant_is_a_cycle(self, make_account):
        root = make_account('Assets', category=AccountCategory.ASSET, account_type=AccountType.CONTROL)
        middle = make_account('Cold Rooms', parent=root, account_type=AccountType.CONTROL)
        leaf_group = make_account('Chamber A', parent=middle, account_type=AccountType.CONTROL)

        assert coa_service.would_create_cycle(root.pk, leaf_group.pk) is True
        assert coa_service.would_create_cycle(leaf_group.pk, root.pk) is False
        with pytest.raises(AccountValidationError):
            coa_service.reparent(root.pk, leaf_group.pk)
        assert Account.objects.get(pk=root.pk).parent_id is None

    def test_account_cannot_be_its_own_parent(self, make_account):
        root = make_account('Assets', category=AccountCategory.ASSET, account_type=AccountType.CONTROL)
        sub = make_account('Current Assets', parent=root, account_type=AccountType.SUB_CONTROL)
        with pytest.raises(AccountValidationError):
            coa_service.reparent(sub.pk, sub.pk)

    def test_reparent_moves_account(self, make_account):
        root = make_account('Assets', category=AccountCategory.ASSET, account_type=AccountType.CONTROL)
        first = make_account('Current Assets', parent=root, account_type=AccountType.SUB_CONTROL)
        second = make_account('Fixed Assets', parent=root, account_type=AccountType.SUB_CONTROL)
        leaf = make_account('Forklift', parent=first)

        moved = coa_service.reparent(leaf.pk, second.pk)
        assert moved.parent_id == second.pk


# =============================================================================
# Conflicts, Updates and Deletion
# =============================================================================

@pytest.mark.django_db
class TestConflictsAndDeletion:

    def test_duplicate_explicit_code_conflicts(self, chart):
        with pytest.raises(AccountCodeConflictError):
            coa_service.create_account({'name': 'Second Cash', 'code': CASH}, parent_id=chart[CASH].parent_id)

    def test_update_to_existing_code_conflicts(self, chart, make_account):
        extra = make_account('Petty Cash', parent=chart[CASH].parent)
        with pytest.raises(AccountCodeConflictError):
            coa_service.update_account(extra.pk, {'code': CASH})

    def test_system_accounts_cannot_be_modified_or_deleted(self, chart):
        root = chart['1-0001']
        with pytest.raises(AccountValidationError):
            coa_service.update_account(root.pk, {'name': 'Everything We Own'})
        with pytest.raises(AccountValidationError):
            coa_service.delete_account(root.pk)

    def test_account_with_children_cannot_be_deleted(self, chart):
        with pytest.raises(AccountValidationError):
            coa_service.delete_account(chart[CASH].parent_id)

    def test_delete_is_soft(self, chart):
        coa_service.delete_account(chart[OWNER_CAPITAL].pk)

        assert not Account.objects.filter(code=OWNER_CAPITAL).exists()
        assert Account.all_objects.filter(code=OWNER_CAPITAL).exists()
        with pytest.raises(AccountNotFoundError):
            coa_service.get_account_by_code(OWNER_CAPITAL)

    def test_deleted_code_cannot_be_reused(self, chart):
        parent_id = chart[OWNER_CAPITAL].parent_id
        coa_service.delete_account(chart[OWNER_CAPITAL].pk)
        with pytest.raises(AccountCodeConflictError):
            coa_service.create_account({'name': 'New Capital', 'code': OWNER_CAPITAL}, parent_id=parent_id)

    def test_generated_root_code_skips_soft_deleted_code(self, make_account):
        first = make_account('Assets', category=AccountCategory.ASSET, account_type=AccountType.CONTROL)
        coa_service.delete_account(first.pk)

        second = make_account('Assets 2', category=AccountCategory.ASSET, account_type=AccountType.CONTROL)
        assert second.code == '1-0002'

    def test_generated_child_code_skips_soft_deleted_sibling(self, make_account):
        root = make_account('Liabilities', category=AccountCategory.LIABILITY, account_type=AccountType.CONTROL)
        make_account('Trade Payables', parent=root)
        accrued = make_account('Accrued Wages', parent=root)
        coa_service.delete_account(accrued.pk)

        replacement = make_account('Accrued Power', parent=root)
        assert replacement.code == '2-0001-0003'

    def test_generated_child_code_skips_code_of_moved_account(self, make_account):
        root = make_account('Assets', category=AccountCategory.ASSET, account_type=AccountType.CONTROL)
        first = make_account('Current Assets', parent=root, account_type=AccountType.SUB_CONTROL)
        second = make_account('Fixed Assets', parent=root, account_type=AccountType.SUB_CONTROL)
        make_account('Petty Cash', parent=first)
        forklift = make_account('Forklift', parent=first)
        coa_service.reparent(forklift.pk, second.pk)

        assert make_account('Float', parent=first).code == '1-0001-0001-0003'

    def test_update_changes_fields(self, chart):
        updated = coa_service.update_account(chart[CASH].pk, {'name': 'Cash on Premises'})
        assert Account.objects.get(pk=updated.pk).name == 'Cash on Premises'


# =============================================================================
# Tree Tests
# =============================================================================

@pytest.mark.django_db
class TestTree:

    def test_flattened_tree_contains_each_account_once(self, chart):
        flat = coa_service.flatten_tree(coa_service.get_account_tree())
        codes = [node['code'] for node in flat]

        assert sorted(codes) == sorted(chart)
        assert len(codes) == len(set(codes))

    def test_children_are_sorted_by_code(self, chart):
        tree = coa_service.get_account_tree()
        assert [node['code'] for node in tree] == ['1-0001', '2-0001', '3-0001', '4-0001', '5-0001']
        current_assets = tree[0]['children'][0]
        child_codes = [child['code'] for child in current_assets['children']]
        assert child_codes == sorted(child_codes)

    def test_accounts_with_missing_parent_become_roots(self, chart):
        subset = [chart[CASH], chart[OWNER_CAPITAL]]
        tree = coa_service.build_tree(subset)
        assert {node['code'] for node in tree} == {CASH, OWNER_CAPITAL}

    def test_descendants_and_sub_tree(self, chart):
        descendants = coa_service.get_descendants(chart['1-0001'].pk)
        assert [a.code for a in descendants] == ['1-0001-0001', '1-0001-0001-0001', '1-0001-0001-0002',
                                                 '1-0001-0001-0003']
        sub_tree = coa_service.get_sub_tree(chart['1-0001-0001'].pk)
        assert len(sub_tree) == 1
        assert len(sub_tree[0]['children']) == 3


# =============================================================================
# Seeding Tests
# =============================================================================

@pytest.mark.django_db
class TestSeeding:

    def test_seeding_is_idempotent(self):
        first = coa_service.seed_default_chart()
        second = coa_service.seed_default_chart()

        assert first['created'] > 0
        assert second['created'] == 0
        assert second['skipped'] == first['created']

    def test_seeded_flags(self, chart):
        assert chart[CASH].is_cash_account
        assert chart['1-0001'].is_system
        assert chart[CASH].category == AccountCategory.ASSET
