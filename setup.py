#!/usr/bin/env python
install_requires = ['numpy', 'xarray', 'netcdf4', 'python-dateutil']
tests_require = ['pytest']
# %%
from setuptools import setup, find_packages

setup(name='geocrx',
      packages=find_packages('src'),
      package_dir={'': 'src'},
      description='Hatanaka compact RINEX (CRINEX) codec and RINEX 2/3/4 OBS reader',
      author='geocrx developers',
      version='1.0.0',
      install_requires=install_requires,
      tests_require=tests_require,
      python_requires='>=3.9',
      extras_require={'tests': tests_require,
                      'lzw': ['ncompress']},
      classifiers=[
      'Development Status :: 4 - Beta',
      'Environment :: Console',
      'Intended Audience :: Science/Research',
      'Operating System :: OS Independent',
      'Programming Language :: Python :: 3',
      'Topic :: Scientific/Engineering :: Atmospheric Science',
      ],
      entry_points={'console_scripts': ['crx2rnx=geocrx.__main__:crx2rnx',
                                        'rnx2crx=geocrx.__main__:rnx2crx',
                                        'geocrx_read=geocrx.__main__:geocrx_read',
                                        'geocrx_time=geocrx.__main__:geocrx_time']},
      include_package_data=True,
      )
