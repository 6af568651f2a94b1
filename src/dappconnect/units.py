"""
Display values for the session view.

>>> format_ether(10 ** 18)
'1.000'
>>> shorten_account('0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed')
'0x5aAe...eAed'
"""
from decimal import Decimal

from dappconnect.state import UNKNOWN

WEI_PER_ETHER = 10 ** 18
ETHER_SYMBOL = "Ξ"


def format_ether(wei, precision=4):
    """ formats an amount in wei as ether with the given number of significant digits """
    ether = float(Decimal(wei) / WEI_PER_ETHER)
    text = "%#.*g" % (precision, ether)
    if 'e' not in text:
        text = text.rstrip('.')
    return text


def describe_balance(balance):
    if balance is UNKNOWN:
        return "N/A"
    if balance is None:
        return "Error"
    return "%s %s" % (ETHER_SYMBOL, format_ether(balance))


def shorten_account(account):
    if account is UNKNOWN:
        return "N/A"
    if account is None:
        return "None"
    return "%s...%s" % (account[:6], account[-4:])


def describe_value(value):
    """ UNKNOWN and None as shown to the user, other values as is """
    if value is UNKNOWN:
        return "N/A"
    if value is None:
        return "None"
    return str(value)
