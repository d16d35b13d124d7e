# diagnostic script to test the configured database connection
import os
import sys
import traceback

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from config import Config
from database import db, free, get_instance

print('Testing DB connection with:')
print('DSN=', Config.DB_DSN)
print('USER=', Config.DB_USER)
print('PREFIX=', Config.DB_PREFIX or '(none)')
print('PASSWORD set?', bool(Config.DB_PASSWORD))

try:
    get_instance()
    print('Connection OK, driver:', db.backend)
    print('Query ok, result:', db.query_fetch_col_assoc('SELECT 1'))
    print('Tables:', ', '.join(db.table_names()) or '(none)')
    print('Queries:', db.query_count(), 'time: %.6fs' % db.time())
except Exception as e:
    print('ERROR connecting:', repr(e))
    traceback.print_exc()
finally:
    free()
