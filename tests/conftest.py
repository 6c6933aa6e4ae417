"""Global test configuration and fixtures.

Applies workarounds that must be in place before any test module imports,
and writes a small but messy copy of the raw exports for end-to-end tests.
"""

from __future__ import annotations

import decimal
import json

import pytest

# ---------------------------------------------------------------------------
# Python 3.14 workaround for sqlglot / ibis
# ---------------------------------------------------------------------------
# sqlglot's Oracle compiler triggers decimal.InvalidOperation while ibis
# imports its SQL compilers. Disabling the trap before any ibis import keeps
# the compiler package importable for the whole session.
# ---------------------------------------------------------------------------
decimal.getcontext().traps[decimal.InvalidOperation] = False


# User 1746 appears twice (second row must be dropped). User 2000 has zero
# income, so no debt-to-income ratio.
USERS_CSV = """\
id,current_age,retirement_age,birth_year,birth_month,gender,address,latitude,longitude,per_capita_income,yearly_income,total_debt,credit_score,num_credit_cards
825,53,66,1966,11,Female,462 Rose Lane,34.15,-117.76,$29278,$59696,$127613,787,5
1746,53,68,1966,12,Female,3606 Federal Boulevard,40.76,-73.74,$37891,$77254,$191349,701,5
1718,81,67,1938,11,Female,766 Third Drive,34.02,-117.89,$22681,$33483,$196,698,5
1746,99,68,1966,12,Female,Duplicate Row,40.76,-73.74,$1,$1,$1,701,5
2000,30,65,1994,1,Male,1 Main Street,40.00,-73.00,$0,$0,"$1,000",650,1
"""

# 4524 duplicated; 21 has a $0 limit (dropped); 5000 has unparsable dates and
# no transactions; 6000 has no limit and an unknown owner.
CARDS_CSV = """\
id,client_id,card_brand,card_type,card_number,expires,cvv,has_chip,num_cards_issued,credit_limit,acct_open_date,year_pin_last_changed,card_on_dark_web
4524,825,Visa,Debit,4344676511950444,12/2022,623,YES,2,$24295,09/2002,2008,No
2731,825,Visa,Debit,4956965974959986,12/2020,393,YES,2,"$21,968",04/2014,2014,No
21,1746,Mastercard,Credit,5000000000000000,03/2019,100,NO,1,$0,03/2019,2019,No
5000,1718,Amex,Credit,3000000000000000,bad,200,YES,1,$5000,13/2019,2020,Yes
4524,825,Visa,Debit,9999999999999999,12/2022,623,YES,2,$99999,09/2002,2008,No
6000,9999,Visa,Credit,4000000000000000,01/2025,300,NO,1,,01/2020,2020,No
"""

# 7475328 duplicated; 7475333 has whitespace-only errors and no label.
TRANSACTIONS_CSV = """\
id,date,client_id,card_id,amount,use_chip,merchant_id,merchant_city,merchant_state,zip,mcc,errors
7475327,2010-01-01 00:01:00,825,4524,$-77.00,Swipe Transaction,59935,  Beulah ,ND,58523,5499,
7475328,2010-01-01 00:02:00,825,2731,$14.57,Swipe Transaction,67570,La Verne,CA,91750,5311,
7475329,2010-01-01 00:02:00,1746,21,$80.00,Swipe Transaction,27092,Crown Point,IN,46307,4829,"Bad PIN,Bad CVV"
7475331,2010-01-01 00:05:00,1718,4524,$200.00,Online Transaction,39021,ONLINE,,,4784,Technical Glitch
7475332,2010-01-01 00:06:00,825,4524,-$45.00,Chip Transaction,10001,Beulah,ND,58523,9999,"Bad PIN,Bad CVV"
7475328,2010-01-01 00:09:00,825,2731,$999.00,Swipe Transaction,67570,La Verne,CA,91750,5311,
7475333,2010-01-02 10:00:00,825,2731,"$1,250.50",Chip Transaction,10002,Beulah,ND,58523,5411,"  "
"""

# 7475327 labeled twice (first wins); 7475331 has an inadmissible label.
FRAUD_LABELS_CSV = """\
transaction_id,target
7475327,No
7475328,No
7475329,Yes
7475331,maybe
7475332,Yes
7475327,Yes
"""

MCC_CODES = {
    "5499": "Miscellaneous Food Stores",
    "5311": "Department Stores",
    "4829": "Money Transfer",
    "4784": "Tolls and Bridge Fees",
    "5411": "Grocery Stores",
}


@pytest.fixture
def financial_dir(tmp_path):
    """Directory with the five raw exports."""
    directory = tmp_path / "Financial"
    directory.mkdir()
    (directory / "users_data.csv").write_text(USERS_CSV)
    (directory / "cards_data.csv").write_text(CARDS_CSV)
    (directory / "transactions_data.csv").write_text(TRANSACTIONS_CSV)
    (directory / "train_fraud_labels.csv").write_text(FRAUD_LABELS_CSV)
    (directory / "mcc_codes.json").write_text(json.dumps(MCC_CODES))
    return directory


@pytest.fixture
def run_settings(tmp_path, financial_dir):
    """Settings reading the fixture exports and writing under tmp_path."""
    import finprep.settings as settings

    return settings.FinprepSettings().with_directories(
        input_dir=str(financial_dir),
        output_dir=str(tmp_path / "CleanedDataSet"),
    )


@pytest.fixture
def conn():
    """Fresh in-memory DuckDB connection."""
    import ibis

    connection = ibis.duckdb.connect()
    yield connection
    connection.disconnect()
