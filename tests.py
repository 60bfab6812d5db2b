# coverage run --branch tests.py && coverage report -m

import inspect
import logging
import os
import pathlib
import sys
import unittest

import importlib.util
def imp_load_source ( module_name, path ):
	#print ( f'loading {path!r}' )
	spec = importlib.util.spec_from_file_location ( module_name, path )
	module = importlib.util.module_from_spec ( spec )
	spec.loader.exec_module ( module )
	return module

logging.basicConfig (
	stream = sys.stdout,
	#level = logging.DEBUG,
	format = (
		#'%(asctime)s '
		'[%(name)s %(levelname)s] '
		'%(message)s'
	),
)

# test modules import the project modules and the fake server helpers by bare name
here = pathlib.Path ( __file__ ).parent.absolute()
sys.path[0:0] = [ str ( here ), str ( here / 'tests' ) ]

loader = unittest.TestLoader()
suite = unittest.TestSuite()

def look_for_tests ( path ):
	for p in sorted ( pathlib.Path ( path ).glob ( '*_test.py' ) ):
		module_name = os.path.splitext ( p.name )[0]
		module = imp_load_source ( module_name, str ( p ) )
		for attr in dir ( module ):
			if attr[0] != '_':
				x = getattr ( module, attr )
				if inspect.isclass ( x ) and issubclass ( x, unittest.TestCase ):
					suite.addTest ( loader.loadTestsFromTestCase ( x ) )

look_for_tests ( here / 'tests' )

result = unittest.TextTestRunner ( verbosity = 1, failfast = True ).run ( suite )
sys.exit ( not result.wasSuccessful() )
