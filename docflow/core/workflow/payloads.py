"""Fixed-shape payloads pushed to core banking when a chain completes.

The exchange service expects the full record layout; the values here are
the staging defaults agreed with the core banking team and are not derived
from the document being activated.
"""

import copy
from typing import Any, Dict

# Record layout for account creation (IZNAF01 header + IZNAF36 KYC flags)
ACCOUNT_PUSH_TEMPLATE: Dict[str, Any] = {
    "IZNAF01": {
        "F01BY": "@15074201A",
        "F01DT1": 1230921,
        "RQTM": 111229,
        "DTAST": "A",
        "CRLST": "",
        "F01TYP": "2",
        "F01BRN": "0786",
        "F01MAK": "L001",
        "F01DT": 1230921,
        "F01TM": 112440,
        "F01CHK": "L006",
        "F01DTC": 1230921,
        "F01TMC": 112509,
        "F01CHK1": "L031",
        "F01DTC1": 1230921,
        "F01TMC1": 115024,
        "F01CHK2": "L036",
        "F01DTC2": 1230921,
        "F01TMC2": 115032,
        "F01STA": "",
        "F01STAD": "",
        "ANCF01": "CJV05C",
        "ANCF02": "EA",
        "ANCF03": "A A",
        "ANCF04": "A",
        "ANCF05": "PK",
        "ANCF06": "PK",
        "ANCF07": "00D",
        "ANCFL1": "",
        "ANCFL2": "",
        "ANCFST": "",
        "CAAF00": "H",
        "CAAF01": "1",
        "CAAR01F": "A",
        "CAAR02F": "A",
        "CAAR03F": "A",
        "CAAR04F": "",
        "CAAR05F": "PK",
        "CAAR06F": "0021",
        "CAAR07F": "",
        "CAAP01F": "A",
        "CAAP02F": "A",
        "CAAP03F": "A",
        "CAAP04F": "",
        "CAAP05F": "PK",
        "CAAP06F": "0021",
        "CAAP07F": "",
        "CAAO01F": "A",
        "CAAO02F": "A",
        "CAAO03F": "A",
        "CAAO04F": "",
        "CAAO05F": "PK",
        "CAAO06F": "0021",
        "CAAO07F": "",
        "CAAO08F": "H",
        "CAAO09F": "",
        "CAAO10F": "03478545556",
        "CAAO11F": "",
        "CAAO12F": "",
        "CAAO13F": "0092",
        "CAAFST": "",
        "MCOF01": "0",
        "MCOF02": "S30",
        "MCOF03": "CA",
        "MCOF04": "N",
        "MCOF05": "",
        "MCOFST": "",
        "INDVF06": "2563325566666",
        "FCUSTP": "A1",
        "FCUOTP": "",
        "FNTBUS": "",
        "FOTBUS": "",
        "FEXINC": 1,
        "FEXCRT": 1,
        "FNOOFC": 1,
        "FEXDBT": 1,
        "FNOOFD": 1,
        "FSRCIN": "01",
        "FOTHINC": "",
        "FSRCWL": "06",
        "FOSRIN": "A",
        "FCRTRN": "06",
        "FOTTRN": "",
        "FTIT": "1",
        "FRISK": "L"
    },
    "IZNAF36": {
        "F36BY": "@15074201A",
        "OFJ108": "N",
        "OFJ109": "N",
        "OFJ110": "N",
        "OFJ111": "N",
        "OFJ114": "N",
        "OFJ115": "",
        "OFJ119": "",
        "OFJ208": "N",
        "OFJ209": "N",
        "OFJ210": "N",
        "OFJ211": "N",
        "OFJ214": "N",
        "OFJ215": "",
        "OFJ219": "",
        "OFJ308": "N",
        "OFJ309": "N",
        "OFJ310": "N",
        "OFJ311": "N",
        "OFJ314": "N",
        "OFJ315": "",
        "OFJ319": "",
        "CAAB04F36": "",
        "CAAT04F36": "",
        "CAAM04F36": "",
        "F36MTCMT1": "",
        "F36MTCMT2": "",
        "F36MTCMT3": "",
        "CUSRATF36": "L",
        "CUSWHTF36": 20,
        "CUSWHAL36": 0,
        "F36PURCIF": "02",
        "F36ADDTYP": "01",
        "F36FL1": "",
        "F36FL2": "N N",
        "F36FL3": "A",
        "F36FL4": " NNNN N",
        "F36FL5": "N0302",
        "F36FL6": "",
        "F36FL7": " 1",
        "F36FL8": "",
        "F36FL9": "",
        "F36S13": "A A",
        "F36VED": 0
    }
}


# Record layout for customer creation (IZNAF01 header + IZNAF18 + IZNAF04)
CIF_PUSH_TEMPLATE: Dict[str, Any] = {
    "IZNAF01": {
        "F01BY": "@10054815C",
        "F01DT1": 1211026,
        "RQTM": 52452,
        "DTAST": "A",
        "CRLST": "",
        "F01TYP": "1",
        "F01BRN": "0786",
        "F01MAK": "L001",
        "F01DT": 1211026,
        "F01TM": 53044,
        "F01CHK": "L006",
        "F01DTC": 1211026,
        "F01TMC": 54141,
        "F01CHK1": "L031",
        "F01DTC1": 1211026,
        "F01TMC1": 63004,
        "F01CHK2": "L036",
        "F01DTC2": 1211026,
        "F01TMC2": 82629,
        "F01STA": "",
        "F01STAD": "",
        "ANCF01": "CI2817",
        "ANCF02": "EA",
        "ANCF03": "AHSAN SHAH",
        "ANCF04": "AHSAN",
        "ANCF05": "PK",
        "ANCF06": "PK",
        "ANCF07": "00D",
        "ANCFL1": "",
        "ANCFL2": "",
        "ANCFST": "",
        "CAAF00": "H",
        "CAAF01": "4",
        "CAAR01F": "SS",
        "CAAR02F": "SDS",
        "CAAR03F": "DD",
        "CAAR04F": "",
        "CAAR05F": "PK",
        "CAAR06F": "0065",
        "CAAR07F": "",
        "CAAP01F": "SS",
        "CAAP02F": "SDS",
        "CAAP03F": "DD",
        "CAAP04F": "",
        "CAAP05F": "PK",
        "CAAP06F": "0065",
        "CAAP07F": "",
        "CAAO01F": "TOWER",
        "CAAO02F": "II CHUNDRIGAR",
        "CAAO03F": "MM ALM RD",
        "CAAO04F": "",
        "CAAO05F": "PK",
        "CAAO06F": "0065",
        "CAAO07F": "",
        "CAAO08F": "H",
        "CAAO09F": "",
        "CAAO10F": "03333333333",
        "CAAO11F": "",
        "CAAO12F": "",
        "CAAO13F": "0092",
        "CAAFST": "",
        "MCOF01": "",
        "MCOF02": "S30",
        "MCOF03": "CA",
        "MCOF04": "N",
        "MCOF05": "",
        "MCOFST": "",
        "INDVF06": "4220133333333",
        "FCUSTP": "A1",
        "FCUOTP": "",
        "FNTBUS": "",
        "FOTBUS": "",
        "FEXINC": 47000,
        "FEXCRT": 120,
        "FNOOFC": 3,
        "FEXDBT": 111,
        "FNOOFD": 7,
        "FSRCIN": "01",
        "FOTHINC": "",
        "FSRCWL": "06",
        "FOSRIN": "",
        "FCRTRN": "06",
        "FOTTRN": "",
        "FTIT": "4",
        "FRISK": "H"
    },
    "IZNAF18": {
        "BF18BY": "@10054815C",
        "BF01": "",
        "BF02": "",
        "BF03": "",
        "BF04": "",
        "BF05": "",
        "BF06": "",
        "BF07": "",
        "BF08": "",
        "BF09": "",
        "BF10": "",
        "BF11": "",
        "BF12": "",
        "BF13": "N",
        "BF14": "",
        "BF141": "N",
        "BF142": "N",
        "BF143": "",
        "BF144": "",
        "BF15": "",
        "BF16": "",
        "BF17": "",
        "BF18": "",
        "BF19": "",
        "BF20": "",
        "BF21": "",
        "BF22": "",
        "BF23": ""
    },
    "IZNAF04": {
        "F04BY": "@10054815C",
        "FA01": "N",
        "FA02": "N",
        "FA03": "",
        "FA04": "",
        "FA05": "",
        "FA06": "",
        "FA07": "",
        "FA08": "",
        "FA09": "N",
        "FA09A": "N",
        "FA10": "",
        "FA11": "N",
        "FA12": "N",
        "FA13": "",
        "FA14": "",
        "FA15": "",
        "FA16": "",
        "FA17": "",
        "FA18": "",
        "FA19": "",
        "FA20": "",
        "FA21": "",
        "FA22": "",
        "FA23": "",
        "FA24": "",
        "FA25": "26102021",
        "FA26": "",
        "FA27": "",
        "FA28": "",
        "FA29": "0065",
        "FA30": "26102021",
        "F01FLD1": "",
        "F01FLD2": "",
        "F01FLD3": ""
    }
}


def account_push_payload() -> Dict[str, Any]:
    return copy.deepcopy(ACCOUNT_PUSH_TEMPLATE)


def cif_push_payload() -> Dict[str, Any]:
    return copy.deepcopy(CIF_PUSH_TEMPLATE)


def provisional_account_headers(channel_id: str, teller_id: str) -> Dict[str, str]:
    """Headers the provisional account number generator requires."""
    return {
        "accounttype": "saving",
        "channelid": channel_id,
        "servicename": "provisional-account-number",
        "tellerid": teller_id,
    }
