import csv
import logging
import sys

import tablegate

"""
Nightly price sync: loads a supplier price file into a MySQL/MariaDB shop database.

New SKUs are inserted (existing ones keep their name but take the new price) and
discontinued SKUs are switched off with one join update.

price file columns: sku,name,price,discontinued

CREATE TABLE products (
  id      int AUTO_INCREMENT PRIMARY KEY,
  sku     varchar(32) NOT NULL UNIQUE,
  name    varchar(100),
  price   decimal(10,2),
  active  tinyint(1) NOT NULL DEFAULT 1
);
"""

BATCH_SIZE = 5_000

if __name__ == '__main__':
    tablegate.setup_logging('price_sync')
    price_file = sys.argv[1] if len(sys.argv) > 1 else 'prices.csv'

    with open(price_file, newline='', encoding='utf-8') as fp:
        records = list(csv.DictReader(fp))

    current = [{'sku': r['sku'], 'name': r['name'], 'price': r['price']}
               for r in records if r['discontinued'] != 'Y']
    retired = [{'sku': r['sku'], 'active': 0} for r in records if r['discontinued'] == 'Y']
    price_types = {'price': tablegate.ParameterType.STRING}

    db = tablegate.connect('shop')
    products = tablegate.TableGateway(db, 'products')
    try:
        with db.transaction():
            # keep each statement well below the 65,535 placeholder limit
            for batch in tablegate.batch_iterable(current, BATCH_SIZE):
                products.bulk_insert(batch, column_types=price_types,
                                     update_on_duplicate_key=True, update_columns=['price'])
            if retired:
                products.bulk_update(retired, join_columns=['sku'])
    except tablegate.TableGateError as e:
        logging.error(f"Price sync failed, nothing committed: {e}")
    finally:
        db.close()

    error_log = tablegate.errors_logged()
    if error_log:
        print(f"Errors detected! See: {error_log}")
