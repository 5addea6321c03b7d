"""
Delivro Logistic - carrier gateway for Canadian parcel shipping.

Freightcom, Canada Post and Purolator behind one BaseCarrier interface,
with concurrent multi-carrier quoting.
"""
__version__ = "1.0.0"
