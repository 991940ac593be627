# artisan_market/cli.py
import re

import click
from werkzeug.security import generate_password_hash
from .extensions import db
from .model import Event, Shop, User
from .services import event_pricing
from .services.errors import PromotionError
from .utils.dates import utcnow

def _slugify(text):
    return re.sub(r"[^a-z0-9]+", "-", text.strip().lower()).strip("-")

@click.command("create-seller")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--name", required=True)
@click.option("--shop-name", required=True)
def create_seller(email, password, name, shop_name):
    email = email.strip().lower()
    if User.query.filter_by(email=email).first():
        click.echo("Email already exists"); return
    slug = _slugify(shop_name)
    if Shop.query.filter_by(slug=slug).first():
        click.echo("Shop name already taken"); return
    u = User(email=email, name=name, password_hash=generate_password_hash(password), role="seller")
    db.session.add(u); db.session.flush()
    s = Shop(name=shop_name, slug=slug, seller_id=u.id)
    db.session.add(s); db.session.commit()
    click.echo(f"Seller created: {u.id} {u.email} (shop {s.id} {s.slug})")

@click.command("recompute-event-pricing")
@click.option("--event-id", type=int, default=None, help="Only this event; default is every active, unfinished event.")
def recompute_event_pricing(event_id):
    if event_id is not None:
        ids = [event_id]
    else:
        ids = [e.id for e in (Event.query
                              .filter(Event.is_active.is_(True), Event.ending_date > utcnow())
                              .order_by(Event.id).all())]
    for eid in ids:
        try:
            n = event_pricing.sync_event(eid)
        except PromotionError as e:
            raise click.ClickException(f"event {eid}: {e.message}")
        verb = "repriced" if db.session.get(Event, eid).is_active else "reset"
        click.echo(f"Event {eid}: {n} product(s) {verb}")

def register_cli(app):
    app.cli.add_command(create_seller)
    app.cli.add_command(recompute_event_pricing)
