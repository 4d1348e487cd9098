"""Numeric constants of the CAN network layer, its error frames, J1939 and raw sockets."""

from enum import IntEnum, IntFlag

# Special address description flags for the CAN identifier.
CAN_EFF_FLAG = 0x80000000  # extended frame format in the MSB
CAN_RTR_FLAG = 0x40000000  # remote transmission request
CAN_ERR_FLAG = 0x20000000  # error message frame

# Valid bits of the identifier for each frame format.
CAN_SFF_MASK = 0x000007FF
CAN_EFF_MASK = 0x1FFFFFFF
CAN_ERR_MASK = 0x1FFFFFFF

CAN_SFF_ID_BITS = 11
CAN_EFF_ID_BITS = 29

# Payload length and DLC limits (ISO 11898-1 and ISO 11898-7).
CAN_MAX_DLC = 8
CAN_MAX_DLEN = 8
CANFD_MAX_DLC = 15
CANFD_MAX_DLEN = 64

# Sizes of the classic and FD frame structures on the socket.
CAN_MTU = 16
CANFD_MTU = 72

# Flags carried in the FD frame's flags byte.
CANFD_BRS = 0x01  # bit rate switch
CANFD_ESI = 0x02  # error state indicator

CAN_INV_FILTER = 0x20000000
CAN_RAW_FILTER_MAX = 512

AF_CAN = 29
PF_CAN = AF_CAN
SOL_CAN_BASE = 100


class CanProtocol(IntEnum):
    """Protocols of the CAN protocol family."""

    RAW = 1
    BCM = 2
    TP16 = 3
    TP20 = 4
    MCNET = 5
    ISOTP = 6
    J1939 = 7


CAN_RAW = CanProtocol.RAW
CAN_BCM = CanProtocol.BCM
CAN_ISOTP = CanProtocol.ISOTP
CAN_J1939 = CanProtocol.J1939
CAN_NPROTO = 8

# Raw socket options.
SOL_CAN_RAW = SOL_CAN_BASE + CAN_RAW


class RawOption(IntEnum):
    """Socket options of raw CAN sockets."""

    FILTER = 1
    ERR_FILTER = 2
    LOOPBACK = 3
    RECV_OWN_MSGS = 4
    FD_FRAMES = 5
    JOIN_FILTERS = 6


CAN_RAW_FILTER = RawOption.FILTER
CAN_RAW_ERR_FILTER = RawOption.ERR_FILTER
CAN_RAW_LOOPBACK = RawOption.LOOPBACK
CAN_RAW_RECV_OWN_MSGS = RawOption.RECV_OWN_MSGS
CAN_RAW_FD_FRAMES = RawOption.FD_FRAMES
CAN_RAW_JOIN_FILTERS = RawOption.JOIN_FILTERS

# Error frames.
CAN_ERR_DLC = 8


class ErrorClass(IntFlag):
    """Error classes carried in the identifier of an error frame."""

    TX_TIMEOUT = 0x001
    LOSTARB = 0x002
    CRTL = 0x004
    PROT = 0x008
    TRX = 0x010
    ACK = 0x020
    BUSOFF = 0x040
    BUSERROR = 0x080
    RESTARTED = 0x100


CAN_ERR_TX_TIMEOUT = ErrorClass.TX_TIMEOUT
CAN_ERR_LOSTARB = ErrorClass.LOSTARB
CAN_ERR_CRTL = ErrorClass.CRTL
CAN_ERR_PROT = ErrorClass.PROT
CAN_ERR_TRX = ErrorClass.TRX
CAN_ERR_ACK = ErrorClass.ACK
CAN_ERR_BUSOFF = ErrorClass.BUSOFF
CAN_ERR_BUSERROR = ErrorClass.BUSERROR
CAN_ERR_RESTARTED = ErrorClass.RESTARTED

CAN_ERR_LOSTARB_UNSPEC = 0x00


class ControllerProblem(IntFlag):
    """Controller error status, data[1] of an error frame."""

    RX_OVERFLOW = 0x01
    TX_OVERFLOW = 0x02
    RX_WARNING = 0x04
    TX_WARNING = 0x08
    RX_PASSIVE = 0x10
    TX_PASSIVE = 0x20
    ACTIVE = 0x40


CAN_ERR_CRTL_UNSPEC = 0x00


class ProtocolViolation(IntFlag):
    """Protocol violation type, data[2] of an error frame."""

    BIT = 0x01
    FORM = 0x02
    STUFF = 0x04
    BIT0 = 0x08
    BIT1 = 0x10
    OVERLOAD = 0x20
    ACTIVE = 0x40
    TX = 0x80


CAN_ERR_PROT_UNSPEC = 0x00


class ProtocolLocation(IntEnum):
    """Protocol violation location, data[3] of an error frame."""

    UNSPEC = 0x00
    ID28_21 = 0x02
    SOF = 0x03
    SRTR = 0x04
    IDE = 0x05
    ID20_18 = 0x06
    ID17_13 = 0x07
    CRC_SEQ = 0x08
    RES0 = 0x09
    DATA = 0x0A
    DLC = 0x0B
    RTR = 0x0C
    RES1 = 0x0D
    ID04_00 = 0x0E
    ID12_05 = 0x0F
    INTERM = 0x12
    CRC_DEL = 0x18
    ACK = 0x19
    EOF = 0x1A
    ACK_DEL = 0x1B


class TransceiverStatus(IntEnum):
    """Transceiver error status, data[4] of an error frame."""

    UNSPEC = 0x00
    CANH_NO_WIRE = 0x04
    CANH_SHORT_TO_BAT = 0x05
    CANH_SHORT_TO_VCC = 0x06
    CANH_SHORT_TO_GND = 0x07
    CANL_NO_WIRE = 0x40
    CANL_SHORT_TO_BAT = 0x50
    CANL_SHORT_TO_VCC = 0x60
    CANL_SHORT_TO_GND = 0x70
    CANL_SHORT_TO_CANH = 0x80


# J1939 addressing.
J1939_IDLE_ADDR = 0xFE
J1939_NO_ADDR = 0xFF
J1939_NO_NAME = 0
J1939_NO_PGN = 0x40000
J1939_MAX_PGN = 0x3FFFF
J1939_PGN_REQUEST = 0x0EE00
J1939_FILTER_MAX = 512

SOL_CAN_J1939 = SOL_CAN_BASE + CAN_J1939


class J1939Option(IntEnum):
    """Socket options of J1939 sockets."""

    FILTER = 1
    PROMISC = 2
    RECV_OWN = 3
    SEND_PRIO = 4


SO_J1939_FILTER = J1939Option.FILTER
SO_J1939_PROMISC = J1939Option.PROMISC
SO_J1939_RECV_OWN = J1939Option.RECV_OWN
SO_J1939_SEND_PRIO = J1939Option.SEND_PRIO


class J1939Cmsg(IntEnum):
    """Ancillary message types delivered on J1939 sockets."""

    DEST_ADDR = 1
    DEST_NAME = 2
    PRIO = 3


SCM_J1939_DEST_ADDR = J1939Cmsg.DEST_ADDR
SCM_J1939_DEST_NAME = J1939Cmsg.DEST_NAME
SCM_J1939_PRIO = J1939Cmsg.PRIO

# Maximum payload of one J1939 extended transport protocol session.
J1939_MAX_ETP_PACKET_SIZE = 7 * 0x00FFFFFF

# Interface names are limited to this many bytes including the terminator.
IFNAMSIZ = 16