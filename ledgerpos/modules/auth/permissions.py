"""Permission slugs checked by the API, with display names."""

PERMISSIONS = {
    "invoices.view": "View invoices",
    "invoices.create": "Create invoices",
    "supplier-bills.view": "View supplier bills",
    "supplier-bills.manage": "Manage supplier bills and payments",
    "salaries.view": "View salaries and salary payments",
    "salaries.manage": "Manage salaries",
    "salaries.pay": "Record salary payments",
    "users.view": "View user permissions",
    "users.manage-permissions": "Manage user permissions",
}
