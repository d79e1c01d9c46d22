# ============================================================
# accounts.py — Principal → role profile, account deletion
# ============================================================

from sqlalchemy.orm import Session as DBSession

from config import logger
from errors import NotFoundError, ConflictError
from ledger import has_open_orders
from models import User, Shopper, Seller


def get_shopper(db: DBSession, user_id: int, lock: bool = False) -> Shopper:
    """
    Shopper profile of the logged-in user.
    lock=True takes a row lock, serialising checkouts of one shopper.
    """
    q = db.query(Shopper).filter(Shopper.user_id == user_id)
    if lock:
        q = q.with_for_update()
    shopper = q.first()
    if not shopper:
        raise NotFoundError("Shopper not found")
    return shopper


def get_seller(db: DBSession, user_id: int) -> Seller:
    seller = db.query(Seller).filter(Seller.user_id == user_id).first()
    if not seller:
        raise NotFoundError("Seller not found")
    return seller


def delete_account(db: DBSession, user_id: int):
    """
    Delete a user and its shopper/seller profile.

    Refused while any live order references the profile. Cart lines,
    products and the owner's own history go with it through the
    foreign key cascades; the counterparty's history rows stay.
    """
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")

    shopper = db.query(Shopper).filter(Shopper.user_id == user_id).first()
    if shopper and has_open_orders(db, shopper_id=shopper.id, statuses=None):
        raise ConflictError("Cannot delete profile. There are active transactions.")

    seller = db.query(Seller).filter(Seller.user_id == user_id).first()
    if seller and has_open_orders(db, seller_id=seller.id, statuses=None):
        raise ConflictError("Cannot delete profile. Active transactions exist.")

    for profile in (shopper, seller):
        if profile is not None:
            db.delete(profile)
    db.delete(user)
    db.flush()
    logger.info(f"[accounts.delete] user {user_id} ({user.role}) deleted")
