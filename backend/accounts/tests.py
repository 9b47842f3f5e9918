from django.contrib import admin
from django.test import TestCase

from .admin import UserAdmin
from .models import User


class UserAdminTests(TestCase):
	def setUp(self):
		self.admin_user = User.objects.create_superuser(
			username='admin',
			password='admin1234',
			email='admin@example.com'
		)
		self.driver = User.objects.create_user(
			username='driver',
			password='driver1234',
			role='driver',
			phone_number='0700000001'
		)
		self.client.force_login(self.admin_user)

	def test_fieldsets_only_name_model_fields(self):
		model_fields = {field.name for field in User._meta.get_fields()}
		user_admin = UserAdmin(User, admin.site)

		for fieldsets in (user_admin.fieldsets, user_admin.add_fieldsets):
			for _, options in fieldsets:
				for name in options['fields']:
					with self.subTest(field=name):
						self.assertIn(name, model_fields | {'password1', 'password2', 'usable_password'})

	def test_change_page_shows_rideshare_profile(self):
		response = self.client.get(f'/admin/accounts/user/{self.driver.id}/change/')

		self.assertEqual(response.status_code, 200)
		self.assertContains(response, 'field-role')
		self.assertContains(response, 'field-rating')

	def test_changelist_lists_riders_and_drivers(self):
		response = self.client.get('/admin/accounts/user/', {'role__exact': 'driver'})

		self.assertEqual(response.status_code, 200)
		self.assertContains(response, 'driver')
		self.assertEqual(list(response.context['cl'].result_list), [self.driver])
