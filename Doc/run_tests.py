#!/usr/bin/env python
"""
Run the storefront test suite with Django's test runner.
Usage: python Doc/run_tests.py [app ...]   e.g. python Doc/run_tests.py orders merchandising
"""
import os
import sys
from pathlib import Path

import django
from django.conf import settings
from django.test.utils import get_runner

APPS = ['core', 'catalog', 'sellers', 'merchandising', 'shop', 'orders', 'reviews', 'reports']

if __name__ == "__main__":
    sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'storefront.config.settings')
    django.setup()

    selected = sys.argv[1:] or APPS
    unknown = [app for app in selected if app not in APPS]
    if unknown:
        sys.exit(f"Unknown app(s): {', '.join(unknown)}. Choose from: {', '.join(APPS)}")

    TestRunner = get_runner(settings)
    test_runner = TestRunner(verbosity=2)
    failures = test_runner.run_tests([f'storefront.{app}' for app in selected])
    sys.exit(bool(failures))
