#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Kifolio web app: portfolios of children's highlights for guardians
"""

import functools
import logging
import os
import shutil
import tempfile
import zipfile
from datetime import date

from dotenv import load_dotenv
from flask import (Blueprint, Flask, abort, current_app, flash, g, jsonify, redirect,
                   render_template, request, send_from_directory, session, url_for)
from flask_bootstrap import Bootstrap
from sqlalchemy import Text, cast
from werkzeug.utils import secure_filename

from dates import format_date
from forms import validate_highlight_form, validate_portfolio_form, validate_signup_form
from media_backfill import MediaTypeBackfill
from media_store import MediaStore
from media_types import classify_media, media_kind
from models import (HIGHLIGHT_TYPES, PORTFOLIO_TEMPLATES, Highlight, Portfolio, User, db,
                    is_valid_short_id)
from portfolio_import import PortfolioDataImporter
from timeline import group_by_month

bp = Blueprint('main', __name__)


def create_app(test_config=None):
    load_dotenv()
    app = Flask(__name__)

    app.config['SECRET_KEY'] = os.getenv('SECRET_KEY', 'dev-secret-change-me')
    app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv('DATABASE_URL', 'postgresql://localhost/kifolio')
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['UPLOAD_FOLDER'] = os.getenv('UPLOAD_FOLDER', 'uploads')
    app.config['MAX_CONTENT_LENGTH'] = int(os.getenv('MAX_CONTENT_LENGTH', 200 * 1024 * 1024))
    app.config['MEDIA_QUALITY'] = os.getenv('MEDIA_QUALITY', 'high')
    app.config['BACKFILL_FETCH_REMOTE'] = os.getenv('BACKFILL_FETCH_REMOTE', 'true').lower() == 'true'
    app.config['PUBLIC_BASE_URL'] = os.getenv('PUBLIC_BASE_URL', 'http://localhost:5000')

    if test_config:
        app.config.update(test_config)

    # Ensure upload folder exists
    app.config['UPLOAD_FOLDER'] = os.path.abspath(app.config['UPLOAD_FOLDER'])
    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

    db.init_app(app)
    Bootstrap(app)

    app.extensions['media_store'] = MediaStore(
        os.path.join(app.config['UPLOAD_FOLDER'], 'media'), url_prefix='/uploads/media'
    )

    app.jinja_env.globals.update(
        media_kind=media_kind,
        classify_media=classify_media,
        highlight_types=HIGHLIGHT_TYPES,
        portfolio_templates=PORTFOLIO_TEMPLATES,
    )
    app.register_blueprint(bp)

    with app.app_context():
        db.create_all()

    return app


def get_store():
    return current_app.extensions['media_store']


@bp.before_app_request
def load_user():
    user_id = session.get('user_id')
    g.user = db.session.get(User, user_id) if user_id else None


def login_required(view):
    @functools.wraps(view)
    def wrapped(**kwargs):
        if g.user is None:
            return redirect(url_for('main.login', next=request.path))
        return view(**kwargs)
    return wrapped


def get_owned_portfolio(portfolio_id):
    portfolio = db.session.get(Portfolio, portfolio_id)
    if portfolio is None:
        abort(404)
    if portfolio.user_id != g.user.id:
        abort(403)
    return portfolio


def get_owned_highlight(portfolio, highlight_id):
    highlight = db.session.get(Highlight, highlight_id)
    if highlight is None or highlight.portfolio_id != portfolio.id:
        abort(404)
    return highlight


def portfolio_access(portfolio):
    """'owner', 'public', 'password' or 'denied' for the current visitor"""
    if g.user is not None and g.user.id == portfolio.user_id:
        return 'owner'
    if not portfolio.is_private:
        return 'public'
    if portfolio.id in session.get('portfolio_access', []):
        return 'password'
    return 'denied'


def media_urls_of(highlights):
    return [item.get('url') for highlight in highlights for item in highlight.media or []]


def build_timeline(portfolio):
    groups, skipped = group_by_month(portfolio.highlights)
    if skipped:
        current_app.logger.warning(
            "Portfolio %s: %s highlights with unreadable dates left out of the timeline",
            portfolio.id, len(skipped)
        )
    return groups, skipped


@bp.route('/')
def home():
    return render_template('home.html')


@bp.route('/signup', methods=['GET', 'POST'])
def signup():
    if request.method == 'POST':
        errors = validate_signup_form(request.form)
        email = (request.form.get('email') or '').strip().lower()
        if not errors and User.query.filter_by(email=email).first():
            errors['email'] = 'An account with this email already exists'
        if errors:
            return render_template('signup.html', errors=errors, form=request.form), 400

        user = User(email=email, name=(request.form.get('name') or '').strip() or None)
        user.set_password(request.form['password'])
        db.session.add(user)
        db.session.commit()

        session.clear()
        session['user_id'] = user.id
        flash('Welcome to Kifolio!', 'success')
        return redirect(url_for('main.dashboard'))

    return render_template('signup.html', errors={}, form={})


@bp.route('/login', methods=['GET', 'POST'])
def login():
    if request.method == 'POST':
        email = (request.form.get('email') or '').strip().lower()
        user = User.query.filter_by(email=email).first()
        if user is None or not user.check_password(request.form.get('password') or ''):
            flash('Invalid email or password', 'error')
            return render_template('login.html'), 401

        session.clear()
        session['user_id'] = user.id
        next_url = request.args.get('next')
        if not next_url or not next_url.startswith('/') or next_url.startswith('//'):
            next_url = url_for('main.dashboard')
        return redirect(next_url)

    return render_template('login.html')


@bp.route('/logout')
def logout():
    session.clear()
    return redirect(url_for('main.home'))


@bp.route('/dashboard')
@login_required
def dashboard():
    portfolios = Portfolio.query.filter_by(user_id=g.user.id).order_by(Portfolio.created_at.desc()).all()
    urls = media_urls_of(h for portfolio in portfolios for h in portfolio.highlights)
    storage = get_store().get_storage_stats(urls)
    return render_template('dashboard.html', portfolios=portfolios, storage=storage)


@bp.route('/account/delete', methods=['POST'])
@login_required
def delete_account():
    """Delete the guardian, their portfolios and highlights, and their stored media"""
    urls = media_urls_of(Highlight.query.join(Portfolio).filter(Portfolio.user_id == g.user.id))

    db.session.delete(g.user)
    db.session.commit()

    store = get_store()
    for url in urls:
        store.delete_file(url)

    session.clear()
    flash('Your account has been deleted', 'success')
    return redirect(url_for('main.home'))


@bp.route('/portfolio/new', methods=['GET', 'POST'])
@login_required
def create_portfolio():
    if request.method == 'POST':
        errors = validate_portfolio_form(request.form)
        if errors:
            return render_template('portfolio_form.html', errors=errors, form=request.form,
                                   portfolio=None), 400

        portfolio = Portfolio(user_id=g.user.id)
        _apply_portfolio_form(portfolio, request.form)
        db.session.add(portfolio)
        db.session.commit()

        flash('Portfolio created', 'success')
        return redirect(url_for('main.view_portfolio', portfolio_id=portfolio.id))

    return render_template('portfolio_form.html', errors={}, form={'template': 'ren'}, portfolio=None)


def _apply_portfolio_form(portfolio, form):
    portfolio.child_name = form['child_name'].strip()
    portfolio.portfolio_title = form['portfolio_title'].strip()
    portfolio.template = form.get('template') or 'ren'
    portfolio.photo_url = (form.get('photo_url') or '').strip() or None
    portfolio.is_private = form.get('is_private') in ('on', 'true', '1')
    if not portfolio.is_private:
        portfolio.set_password(None)
    elif form.get('password'):
        portfolio.set_password(form['password'])


@bp.route('/portfolio/<int:portfolio_id>')
@login_required
def view_portfolio(portfolio_id):
    portfolio = get_owned_portfolio(portfolio_id)
    groups, skipped = build_timeline(portfolio)
    share_url = f"{current_app.config['PUBLIC_BASE_URL'].rstrip('/')}/p/{portfolio.short_id}"
    return render_template('portfolio.html', portfolio=portfolio, groups=groups,
                           skipped_count=len(skipped), share_url=share_url, is_owner=True)


@bp.route('/portfolio/<int:portfolio_id>/edit', methods=['GET', 'POST'])
@login_required
def edit_portfolio(portfolio_id):
    portfolio = get_owned_portfolio(portfolio_id)

    if request.method == 'POST':
        errors = validate_portfolio_form(request.form)
        if errors:
            return render_template('portfolio_form.html', errors=errors, form=request.form,
                                   portfolio=portfolio), 400

        _apply_portfolio_form(portfolio, request.form)
        db.session.commit()
        flash('Portfolio updated', 'success')
        return redirect(url_for('main.view_portfolio', portfolio_id=portfolio.id))

    form = {
        'child_name': portfolio.child_name,
        'portfolio_title': portfolio.portfolio_title,
        'template': portfolio.template,
        'photo_url': portfolio.photo_url or '',
        'is_private': 'on' if portfolio.is_private else '',
    }
    return render_template('portfolio_form.html', errors={}, form=form, portfolio=portfolio)


@bp.route('/portfolio/<int:portfolio_id>/delete', methods=['POST'])
@login_required
def delete_portfolio(portfolio_id):
    portfolio = get_owned_portfolio(portfolio_id)
    urls = media_urls_of(portfolio.highlights)

    db.session.delete(portfolio)
    db.session.commit()

    store = get_store()
    for url in urls:
        store.delete_file(url)

    flash('Portfolio deleted', 'success')
    return redirect(url_for('main.dashboard'))


def _save_highlight(portfolio, highlight=None):
    """Shared POST handling for the new/edit highlight form"""
    store = get_store()
    errors = validate_highlight_form(request.form)

    uploads = [f for f in request.files.getlist('media') if f and f.filename]
    for upload in uploads:
        validation = store.validate_file(upload)
        if not validation['valid']:
            errors['media'] = validation['error']
            break

    if errors:
        return render_template('highlight_form.html', portfolio=portfolio, highlight=highlight,
                               errors=errors, form=request.form), 400

    date_achieved = request.form['date'].strip()
    media = []
    removed = []
    if highlight is not None:
        keep = set(request.form.getlist('keep_media'))
        for item in highlight.media or []:
            (media if item.get('id') in keep else removed).append(item)

    for upload in uploads:
        item = store.save_upload(upload, date_achieved, quality=current_app.config['MEDIA_QUALITY'])
        if item is None:
            flash(f'Could not save {upload.filename}', 'warning')
            continue
        media.append(item)

    if highlight is None:
        highlight = Highlight(portfolio_id=portfolio.id)
        db.session.add(highlight)

    highlight.title = request.form['title'].strip()
    highlight.description = (request.form.get('description') or '').strip() or None
    highlight.date_achieved = date_achieved
    highlight.type = request.form['type']
    highlight.is_milestone = highlight.type == 'milestone'
    highlight.category = (request.form.get('category') or '').strip() or None
    highlight.media = media
    db.session.commit()

    for item in removed:
        store.delete_file(item.get('url'))

    return redirect(url_for('main.view_portfolio', portfolio_id=portfolio.id, highlightAdded='true'))


@bp.route('/portfolio/<int:portfolio_id>/highlight', methods=['GET', 'POST'])
@login_required
def create_highlight(portfolio_id):
    portfolio = get_owned_portfolio(portfolio_id)
    if request.method == 'POST':
        return _save_highlight(portfolio)

    form = {'date': date.today().isoformat()}
    return render_template('highlight_form.html', portfolio=portfolio, highlight=None,
                           errors={}, form=form)


@bp.route('/portfolio/<int:portfolio_id>/highlight/<int:highlight_id>', methods=['GET', 'POST'])
@login_required
def edit_highlight(portfolio_id, highlight_id):
    portfolio = get_owned_portfolio(portfolio_id)
    highlight = get_owned_highlight(portfolio, highlight_id)
    if request.method == 'POST':
        return _save_highlight(portfolio, highlight)

    form = {
        'title': highlight.title,
        'date': format_date(highlight.date_achieved),
        'description': highlight.description or '',
        'type': highlight.type,
        'category': highlight.category or '',
    }
    return render_template('highlight_form.html', portfolio=portfolio, highlight=highlight,
                           errors={}, form=form)


@bp.route('/portfolio/<int:portfolio_id>/highlight/<int:highlight_id>/delete', methods=['POST'])
@login_required
def delete_highlight(portfolio_id, highlight_id):
    portfolio = get_owned_portfolio(portfolio_id)
    highlight = get_owned_highlight(portfolio, highlight_id)
    media = list(highlight.media or [])

    db.session.delete(highlight)
    db.session.commit()

    store = get_store()
    for item in media:
        store.delete_file(item.get('url'))

    flash('Highlight deleted', 'success')
    return redirect(url_for('main.view_portfolio', portfolio_id=portfolio.id))


@bp.route('/p/<short_id>', methods=['GET', 'POST'])
def public_portfolio(short_id):
    if not is_valid_short_id(short_id):
        abort(404)
    portfolio = Portfolio.query.filter_by(short_id=short_id).first()
    if portfolio is None:
        abort(404)

    access = portfolio_access(portfolio)
    if access == 'denied':
        if not portfolio.password_hash:
            abort(404)
        if request.method == 'POST':
            if portfolio.check_password(request.form.get('password')):
                session['portfolio_access'] = session.get('portfolio_access', []) + [portfolio.id]
                return redirect(url_for('main.public_portfolio', short_id=short_id))
            flash('Incorrect password', 'error')
            return render_template('password_prompt.html', portfolio=portfolio), 401
        return render_template('password_prompt.html', portfolio=portfolio)

    groups, skipped = build_timeline(portfolio)
    return render_template('portfolio.html', portfolio=portfolio, groups=groups,
                           skipped_count=len(skipped), share_url=None, is_owner=access == 'owner')


@bp.route('/api/portfolio/<int:portfolio_id>/timeline')
def portfolio_timeline_api(portfolio_id):
    portfolio = db.session.get(Portfolio, portfolio_id)
    if portfolio is None or portfolio_access(portfolio) == 'denied':
        abort(404)

    groups, skipped = build_timeline(portfolio)
    result = []
    for group in groups:
        items = []
        for highlight in group['items']:
            data = highlight.to_dict()
            data['media'] = [dict(item, kind=media_kind(item)) for item in data['media']]
            items.append(data)
        result.append({'label': group['label'], 'month_key': group['month_key'], 'items': items})

    return jsonify({'portfolio_id': portfolio.id, 'groups': result, 'skipped': len(skipped)})


@bp.route('/uploads/<path:filename>')
def serve_all_media(filename):
    """Serve stored media to visitors who can see a portfolio that uses it"""
    url = f'/uploads/{filename}'
    if get_store().local_path(url) is None:
        abort(404)

    name = url.rsplit('/', 1)[-1]
    candidates = Highlight.query.filter(cast(Highlight.media, Text).contains(name, autoescape=True))
    for highlight in candidates:
        if not any(item.get('url') == url for item in highlight.media or []):
            continue
        if portfolio_access(highlight.portfolio) != 'denied':
            return send_from_directory(current_app.config['UPLOAD_FOLDER'], filename)

    abort(404)


@bp.route('/import-data', methods=['GET', 'POST'])
@login_required
def import_data():
    if request.method == 'POST':
        if 'portfolio_data' not in request.files:
            flash('No file uploaded', 'error')
            return redirect(request.url)

        file = request.files['portfolio_data']
        if file.filename == '':
            flash('No file selected', 'error')
            return redirect(request.url)

        filename = secure_filename(file.filename)
        if not filename.endswith(('.zip', '.json')):
            flash('Please upload a .zip or .json export', 'error')
            return render_template('import.html'), 400

        # Exports are unpacked outside the upload folder; only copied media is served
        work_dir = tempfile.mkdtemp(prefix='kifolio-import-')
        try:
            if filename.endswith('.zip'):
                try:
                    with zipfile.ZipFile(file.stream, 'r') as zip_ref:
                        zip_ref.extractall(work_dir)
                except zipfile.BadZipFile:
                    flash('That zip file could not be read', 'error')
                    return render_template('import.html'), 400
            else:
                file.save(os.path.join(work_dir, 'portfolio.json'))

            stats = PortfolioDataImporter(work_dir, g.user, get_store()).import_all()
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

        flash(f"Import complete! Highlights: {stats['highlights_imported']} imported, "
              f"{stats['highlights_skipped']} skipped. "
              f"Portfolios created: {stats['portfolios_created']}.", 'success')

        if stats['errors']:
            for error in stats['errors'][:5]:  # Show first 5 errors
                flash(error, 'warning')

        return render_template('import.html', stats=stats)

    return render_template('import.html')


@bp.route('/backfill-media', methods=['POST'])
@login_required
def backfill_media():
    highlights = (Highlight.query.join(Portfolio)
                  .filter(Portfolio.user_id == g.user.id)
                  .order_by(Highlight.id).all())
    backfill = MediaTypeBackfill(get_store(), fetch_remote=current_app.config['BACKFILL_FETCH_REMOTE'])
    stats = backfill.run(highlights)

    flash(f"Checked {stats['highlights_scanned']} highlights, updated {stats['highlights_updated']}. "
          f"{stats['types_from_heuristics']} media items were typed from their URL and need review.",
          'success')
    for error in stats['errors'][:5]:
        flash(error, 'warning')
    return redirect(url_for('main.dashboard'))


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    create_app().run(debug=True, port=5000)
