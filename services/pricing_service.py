# Quote calculation
from dataclasses import asdict, dataclass, field
from typing import Dict, Optional

from config import Config
from services.validation_service import FULL_SERVICE, LABOR_ONLY

HEAVY_ITEM_FEES = {
    'piano': 200.0,
    'pool table': 300.0,
    'hot tub': 250.0,
    'safe': 150.0,
}

SERVICE_LABELS = {
    FULL_SERVICE: 'movers and truck',
    LABOR_ONLY: 'labor only',
}

# Multi-unit buildings carry the higher per-flight rate
APARTMENT_STYLE_HOMES = ('apartment', 'condo')


@dataclass(frozen=True)
class QuoteBreakdown:
    category: str
    distance_miles: float
    drive_minutes: float
    crew_size: int
    hours: float
    hourly_rate: float
    subtotal: float
    travel_fee: float
    service_charge: float
    add_on_fees: Dict[str, float] = field(default_factory=dict)
    total: float = 0.0

    @property
    def add_ons_total(self):
        return sum(self.add_on_fees.values())

    @property
    def service_label(self):
        return SERVICE_LABELS[self.category]

    def to_dict(self):
        data = asdict(self)
        data['add_ons_total'] = self.add_ons_total
        data['service_label'] = self.service_label
        return data

    @classmethod
    def from_dict(cls, data):
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


class PricingService:
    def __init__(self, config=None):
        cfg = config or Config
        self.rates = {
            FULL_SERVICE: {
                'base': cfg.FULL_SERVICE_BASE_RATE,
                'distance': cfg.FULL_SERVICE_DISTANCE_RATE,
                'crew': cfg.FULL_SERVICE_CREW_RATE,
                'travel': 0.0,
                'charge': cfg.FULL_SERVICE_CHARGE_RATE,
            },
            LABOR_ONLY: {
                'base': cfg.LABOR_ONLY_BASE_RATE,
                'distance': cfg.LABOR_ONLY_DISTANCE_RATE,
                'crew': cfg.LABOR_ONLY_CREW_RATE,
                'travel': cfg.LABOR_ONLY_TRAVEL_RATE,
                'charge': cfg.LABOR_ONLY_CHARGE_RATE,
            },
        }
        self.stairs_fee_house = cfg.STAIRS_FEE_HOUSE
        self.stairs_fee_apartment = cfg.STAIRS_FEE_APARTMENT
        self.appliance_fee = cfg.APPLIANCE_FEE
        self.packing_fee = cfg.PACKING_FEE

    def determine_crew_size(self, category, pickup_bedrooms, pickup_stairs, delivery_bedrooms=0, delivery_stairs=0):
        """Movers needed, from the larger home and whether either end has stairs"""
        rooms = max(int(pickup_bedrooms or 0), int(delivery_bedrooms or 0))
        has_stairs = bool(pickup_stairs) or bool(delivery_stairs)

        if rooms <= 2 and not has_stairs:
            crew = 2
        elif rooms <= 3:
            crew = 3
        else:
            crew = 4

        if category == LABOR_ONLY:
            crew = min(crew, 3)
        return crew

    def estimate_hours(self, category, distance_miles):
        """Job duration from the distance tier"""
        if category == LABOR_ONLY:
            tiers = ((5, 2), (15, 3), (30, 4))
            longest = 5
        else:
            tiers = ((10, 3), (25, 4), (50, 6))
            longest = 8
        for limit, hours in tiers:
            if distance_miles <= limit:
                return hours
        return longest

    def calculate_hourly_rate(self, category, distance_miles, crew_size):
        rates = self._rates_for(category)
        return rates['base'] + distance_miles * rates['distance'] + (crew_size - 2) * rates['crew']

    def calculate_add_on_fees(self, pickup=None, delivery=None, add_ons=None):
        """Per-item fees for stairs, heavy items, appliances and packing"""
        fees = {}
        for label, home in (('pickup', pickup), ('delivery', delivery)):
            if not home:
                continue
            flights = int(home.get('stairs') or 0)
            if flights > 0:
                per_flight = self.stairs_fee_apartment if home.get('home_type') in APARTMENT_STYLE_HOMES \
                    else self.stairs_fee_house
                fees[f'{label}_stairs'] = flights * per_flight

        add_ons = add_ons or {}
        for item in add_ons.get('heavy_items') or []:
            if item in HEAVY_ITEM_FEES:
                fees[item] = fees.get(item, 0.0) + HEAVY_ITEM_FEES[item]
        appliances = add_ons.get('appliances') or []
        if appliances:
            fees['appliances'] = len(appliances) * self.appliance_fee
        if add_ons.get('packing'):
            fees['packing'] = self.packing_fee
        return fees

    def calculate_quote(self, category, distance_miles, crew_size, hours, drive_minutes=0,
                        pickup=None, delivery=None, add_ons=None) -> QuoteBreakdown:
        """Price a move. Amounts keep full precision; round only for display."""
        rates = self._rates_for(category)
        if distance_miles is None or distance_miles < 0:
            raise ValueError(f"Distance must be non-negative, got {distance_miles}")
        if hours is None or hours <= 0:
            raise ValueError(f"Hours must be positive, got {hours}")
        if crew_size not in (2, 3, 4):
            raise ValueError(f"Crew size must be 2 to 4 movers, got {crew_size}")

        hourly_rate = self.calculate_hourly_rate(category, distance_miles, crew_size)
        subtotal = hourly_rate * hours
        travel_fee = distance_miles * 2 * rates['travel'] if category == LABOR_ONLY else 0.0
        service_charge = subtotal * rates['charge']
        add_on_fees = self.calculate_add_on_fees(pickup, delivery, add_ons)
        total = subtotal + travel_fee + service_charge + sum(add_on_fees.values())

        return QuoteBreakdown(
            category=category,
            distance_miles=distance_miles,
            drive_minutes=drive_minutes,
            crew_size=crew_size,
            hours=hours,
            hourly_rate=hourly_rate,
            subtotal=subtotal,
            travel_fee=travel_fee,
            service_charge=service_charge,
            add_on_fees=add_on_fees,
            total=total,
        )

    def _rates_for(self, category):
        if category not in self.rates:
            raise ValueError(f"Unknown service category: {category}")
        return self.rates[category]

    @staticmethod
    def dollars(amount):
        return f"${round(amount):,}"

    def format_quote_message(self, quote: QuoteBreakdown, pickup_address: Optional[str] = None,
                             delivery_address: Optional[str] = None):
        """Format quote for voice response"""
        message = "Based on the information provided, here's your estimate. "
        if quote.category == LABOR_ONLY:
            message += f"We'll send {quote.crew_size} movers for labor only. "
        else:
            message += f"We'll send {quote.crew_size} movers and a truck. "
        if pickup_address and delivery_address:
            message += f"The distance from {pickup_address} to {delivery_address} is about " \
                       f"{round(quote.distance_miles)} miles. "
        message += f"The hourly rate is {self.dollars(quote.hourly_rate)} per hour, "
        message += f"and we estimate about {quote.hours:g} hours. "
        if quote.travel_fee > 0:
            message += f"The round-trip travel fee is {self.dollars(quote.travel_fee)}. "
        if quote.add_on_fees:
            message += f"Extra services add {self.dollars(quote.add_ons_total)}. "
        message += f"Your total estimated cost is {self.dollars(quote.total)}, including the service charge. "
        message += "This is an estimate; the final cost depends on the actual time required."
        return message
