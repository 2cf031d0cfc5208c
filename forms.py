#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Form validation for signup, portfolios and highlights

Each validator returns a dict of field name -> error message; an empty dict
means the form is valid.
"""

from dates import validate_date_string
from models import HIGHLIGHT_TYPES, PORTFOLIO_TEMPLATES

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
NAME_MAX_LENGTH = 100
PORTFOLIO_PASSWORD_MIN_LENGTH = 4
ACCOUNT_PASSWORD_MIN_LENGTH = 8

DATE_ERRORS = {
    'invalid format': 'Please enter the date as YYYY-MM-DD',
    'invalid month': 'Month must be between 1 and 12',
    'invalid day': 'Day must be between 1 and 31',
    'invalid date': 'That date does not exist',
    'year out of range': 'Please enter a realistic year',
    'date too far in the future': 'Date cannot be more than 10 years in the future',
}


def validate_highlight_form(form, reference_now=None):
    errors = {}

    title = (form.get('title') or '').strip()
    if not title:
        errors['title'] = 'Title is required'
    elif len(title) > TITLE_MAX_LENGTH:
        errors['title'] = f'Title must be {TITLE_MAX_LENGTH} characters or less'

    highlight_type = form.get('type') or ''
    if not highlight_type:
        errors['type'] = 'Please select a highlight type'
    elif highlight_type not in HIGHLIGHT_TYPES:
        errors['type'] = 'Unknown highlight type'

    date_value = (form.get('date') or '').strip()
    if not date_value:
        errors['date'] = 'Date is required'
    else:
        result = validate_date_string(date_value, reference_now)
        if not result['valid']:
            errors['date'] = DATE_ERRORS.get(result['reason'], 'Invalid date')

    description = form.get('description') or ''
    if len(description) > DESCRIPTION_MAX_LENGTH:
        errors['description'] = f'Description must be {DESCRIPTION_MAX_LENGTH} characters or less'

    return errors


def validate_portfolio_form(form):
    errors = {}

    child_name = (form.get('child_name') or '').strip()
    if not child_name:
        errors['child_name'] = "Child's name is required"
    elif len(child_name) > NAME_MAX_LENGTH:
        errors['child_name'] = f'Name must be {NAME_MAX_LENGTH} characters or less'

    portfolio_title = (form.get('portfolio_title') or '').strip()
    if not portfolio_title:
        errors['portfolio_title'] = 'Portfolio title is required'
    elif len(portfolio_title) > TITLE_MAX_LENGTH:
        errors['portfolio_title'] = f'Title must be {TITLE_MAX_LENGTH} characters or less'

    template = form.get('template') or 'ren'
    if template not in PORTFOLIO_TEMPLATES:
        errors['template'] = 'Please choose one of the available templates'

    password = form.get('password') or ''
    if password and len(password) < PORTFOLIO_PASSWORD_MIN_LENGTH:
        errors['password'] = f'Password must be at least {PORTFOLIO_PASSWORD_MIN_LENGTH} characters'

    return errors


def validate_signup_form(form):
    errors = {}

    email = (form.get('email') or '').strip()
    if '@' not in email or email.startswith('@') or email.endswith('@'):
        errors['email'] = 'Please enter a valid email address'

    password = form.get('password') or ''
    if len(password) < ACCOUNT_PASSWORD_MIN_LENGTH:
        errors['password'] = f'Password must be at least {ACCOUNT_PASSWORD_MIN_LENGTH} characters'
    elif password != (form.get('confirm_password') or ''):
        errors['confirm_password'] = 'Passwords do not match'

    return errors
