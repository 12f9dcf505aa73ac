"""sctl Meta information.
   sctl keeps KMS-encrypted secrets at rest in a versioned envelope file.
"""
__title__ = 'sctl'
__description__ = (
   'sctl keeps KMS-encrypted secrets at rest in a versioned '
   'envelope file.'
)
__version__ = '1.0.0'
__copyright__ = 'Copyright (c) 2026 sctl contributors'
__author__ = 'sctl contributors'
__author_email__ = 'sctl@example.invalid'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/vapor-ware/sctl'
