"""PassWall Backup Meta information.
   PassWall Backup moves vault credentials between encrypted snapshots,
   CSV files and the live store.
"""
__title__ = 'passwall_backup'
__description__ = (
   'Encrypted backup, restore and CSV import/export '
   'for PassWall credential stores.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/passwall-backup'
