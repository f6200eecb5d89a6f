from django.contrib.auth import get_user_model
from django.test import TestCase

from storefront import accounts
from storefront.errors import InvalidOperation, PermissionDenied
from storefront.models import AccessRequest, Profile


class RoleTests(TestCase):
    def setUp(self):
        User = get_user_model()
        self.admin = User.objects.create_user(username="admin", email="admin@example.com", password="secret")
        self.admin.profile.roles = ["superadmin"]
        self.admin.profile.save()
        self.seller = User.objects.create_user(username="vendedor", email="vendedor@example.com", password="secret")

    def test_profile_created_with_user(self):
        self.assertEqual(Profile.objects.get(user=self.seller).roles, [])

    def test_has_role(self):
        self.assertTrue(accounts.has_role(self.admin, "superadmin"))
        self.assertFalse(accounts.has_role(self.seller, "superadmin", "vendedor"))
        root = get_user_model().objects.create_superuser(username="root", email="root@example.com", password="x")
        self.assertTrue(accounts.has_role(root, "superadmin"))
        with self.assertRaises(PermissionDenied):
            accounts.require_role(self.seller, "superadmin")

    def test_superadmin_updates_roles(self):
        accounts.update_user_roles(self.admin, self.seller, ["vendedor", "analitico", "vendedor"])
        self.seller.profile.refresh_from_db()
        self.assertEqual(self.seller.profile.roles, ["vendedor", "analitico"])

    def test_only_superadmin_can_update_roles(self):
        with self.assertRaises(PermissionDenied):
            accounts.update_user_roles(self.seller, self.admin, ["cliente"])
        self.admin.profile.refresh_from_db()
        self.assertEqual(self.admin.profile.roles, ["superadmin"])

    def test_cannot_change_own_roles(self):
        with self.assertRaises(PermissionDenied):
            accounts.update_user_roles(self.admin, self.admin, ["cliente"])

    def test_unknown_role_is_rejected(self):
        with self.assertRaises(InvalidOperation):
            accounts.update_user_roles(self.admin, self.seller, ["gerente"])

    def test_list_users(self):
        rows = accounts.list_users(self.admin)
        self.assertEqual(
            [(row["email"], row["roles"]) for row in rows],
            [("admin@example.com", ["superadmin"]), ("vendedor@example.com", [])],
        )
        with self.assertRaises(PermissionDenied):
            accounts.list_users(self.seller)


class AccessRequestTests(TestCase):
    def setUp(self):
        User = get_user_model()
        self.admin = User.objects.create_user(username="admin", password="secret")
        self.admin.profile.roles = ["superadmin"]
        self.admin.profile.save()
        self.importer = User.objects.create_user(username="importador", email="compras@import.br", password="secret")

    def _request(self):
        return accounts.request_comex_access(
            self.importer, "Import Ltda", "João Silva", "compras@import.br", "Brasil", "Queremos cotizar."
        )

    def test_request_marks_user_pending(self):
        access_request = self._request()
        self.assertEqual(access_request.status, AccessRequest.Status.PENDING)
        self.importer.profile.refresh_from_db()
        self.assertEqual(self.importer.profile.roles, ["comex_pending"])
        self.assertEqual(list(accounts.pending_access_requests(self.admin)), [access_request])

    def test_request_requires_fields(self):
        with self.assertRaises(InvalidOperation):
            accounts.request_comex_access(self.importer, "", "João", "a@b.com", "Brasil")

    def test_approve_grants_comex(self):
        access_request = self._request()
        accounts.approve_access_request(self.admin, access_request)
        access_request.refresh_from_db()
        self.importer.profile.refresh_from_db()
        self.assertEqual(access_request.status, AccessRequest.Status.APPROVED)
        self.assertEqual(self.importer.profile.roles, ["comex"])
        with self.assertRaises(InvalidOperation):
            accounts.approve_access_request(self.admin, access_request)

    def test_reject_removes_pending_role(self):
        access_request = self._request()
        accounts.reject_access_request(self.admin, access_request)
        access_request.refresh_from_db()
        self.importer.profile.refresh_from_db()
        self.assertEqual(access_request.status, AccessRequest.Status.REJECTED)
        self.assertEqual(self.importer.profile.roles, [])

    def test_only_superadmin_decides(self):
        access_request = self._request()
        with self.assertRaises(PermissionDenied):
            accounts.approve_access_request(self.importer, access_request)
