from .base import load, rinexobs, batch_convert
from .utils import gettime, rinexheader, globber, to_datetime
from .rio import rinexinfo, opener
from .header import obsheader, ObservableTable
from .hatanaka import crx2rnx, rnx2crx, epochs, rinex_name, crinex_name
from .codec import CrinexDecoder, CrinexEncoder, Session, State, __version__
from .rinex import RinexReader
from .record import Epoch, EpochFlag, EpochKey, EpochTime, Observation
from .errors import CrinexError, GrammarError, StateError, TruncationError
