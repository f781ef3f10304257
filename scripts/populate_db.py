import os
import sys
import django
import random
from decimal import Decimal
from datetime import timedelta
from django.utils import timezone
from faker import Faker

# Add project root to Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set up Django environment
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'lotbuy_marketplace.settings')
django.setup()

from core.acceptance import accept_offer
from core.feedback import add_feedback
from core.lifecycle import confirm_delivery, mark_shipped, open_dispute, submit_payment
from core.models import Offer, OfferMessage, Request, User

fake = Faker()

CATEGORIES = ['Electronics', 'Furniture', 'Books', 'Bikes', 'Clothing', 'Collectibles']
CURRENCIES = ['USD', 'USD', 'USD', 'EUR']


def create_users(num_buyers=10, num_sellers=10):
    print(f"Creating {num_buyers} buyers and {num_sellers} sellers...")

    buyers = []
    sellers = []

    for role, count, bucket in (('buyer', num_buyers, buyers), ('seller', num_sellers, sellers)):
        for _ in range(count):
            email = fake.unique.email()
            user = User.objects.create_user(
                username=email,
                email=email,
                password='password123',
                full_name=fake.name(),
                avatar_url=f"https://i.pravatar.cc/150?u={fake.uuid4()}",
                role=role,
            )
            bucket.append(user)

    print(f"Created {len(buyers)} buyers and {len(sellers)} sellers.")
    return buyers, sellers


def create_requests(buyers):
    print("Creating lots...")
    lots = []

    for buyer in buyers:
        # Each buyer posts 1-3 lots
        for _ in range(random.randint(1, 3)):
            lot = Request.objects.create(
                buyer=buyer,
                buyer_name=buyer.display_name,
                buyer_avatar_url=buyer.avatar_url,
                buyer_rating=buyer.rating,
                title=fake.sentence(nb_words=4).rstrip('.'),
                description=fake.paragraph(),
                budget_amount=Decimal(random.randint(20, 900)),
                currency_code=random.choice(CURRENCIES),
                category=random.choice(CATEGORIES),
                location=fake.city(),
                deadline=timezone.now() + timedelta(days=random.randint(3, 30)),
            )
            lots.append(lot)

    print(f"Created {len(lots)} lots.")
    return lots


def create_offers(lots, sellers):
    print("Creating offers and messages...")
    offers = []

    for lot in lots:
        for seller in random.sample(sellers, random.randint(0, 3)):
            price = (lot.budget_amount * Decimal(random.uniform(0.7, 1.1))).quantize(Decimal('0.01'))
            offer = Offer.objects.create(
                request=lot,
                seller=seller,
                seller_name=seller.display_name,
                seller_avatar_url=seller.avatar_url,
                seller_rating=seller.rating,
                price_amount=price,
                currency_code=lot.currency_code,
                message=fake.sentence(),
            )
            offers.append(offer)

            if random.random() < 0.5:
                OfferMessage.objects.create(offer=offer, sender=lot.buyer, body=fake.sentence())
                OfferMessage.objects.create(offer=offer, sender=seller, body=fake.sentence())

    print(f"Created {len(offers)} offers.")
    return offers


def create_deals(lots):
    """
    Accept one offer on some lots and walk each deal a random distance
    through its lifecycle.
    """
    print("Creating deals...")
    deals = 0

    for lot in lots:
        offer = lot.offers.order_by('?').first()
        if offer is None or random.random() < 0.3:
            continue

        details = accept_offer(offer.id, acting_user_id=lot.buyer_id)
        deals += 1
        buyer_id, seller_id = details.buyer.id, details.seller.id

        stage = random.choice(['accepted', 'shipped', 'paid', 'completed', 'completed', 'disputed'])

        if stage == 'disputed':
            open_dispute(details.id, random.choice([buyer_id, seller_id]), fake.sentence())
            continue
        if stage == 'accepted':
            continue

        mark_shipped(details.id, seller_id)
        if stage == 'shipped':
            continue

        submit_payment(details.id, buyer_id)
        if stage == 'paid':
            continue

        confirm_delivery(details.id, seller_id)

        # 70% chance each side leaves feedback
        if random.random() < 0.7:
            add_feedback(details.id, buyer_id, random.randint(3, 5), fake.sentence())
        if random.random() < 0.7:
            add_feedback(details.id, seller_id, random.randint(3, 5), fake.sentence())

    print(f"Created {deals} deals.")


def main():
    print("Starting database population...")

    buyers, sellers = create_users(num_buyers=15, num_sellers=15)

    lots = create_requests(buyers)

    create_offers(lots, sellers)

    create_deals(lots)

    print("Database population completed successfully!")


if __name__ == '__main__':
    main()
